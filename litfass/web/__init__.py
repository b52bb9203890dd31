"""Local HTTP admin interface."""
from .admin import create_app, start_admin_server

__all__ = ["create_app", "start_admin_server"]
