from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

from flask import Flask, jsonify, request

from ..config import AppConfig
from ..orchestrator import IDLE, Orchestrator

REQUEST_TIMEOUT_SECONDS = 5.0


def _call_in_loop(controller: Orchestrator, factory: Callable[[], Awaitable[Any]]) -> Any:
    """Run a coroutine on the orchestrator's event loop and wait for its result.

    Flask serves requests on its own threads; everything touching the
    orchestrator has to happen on the loop thread.
    """
    loop = controller.loop
    if loop is None or loop.is_closed():
        raise RuntimeError("event loop is not available")

    async def _invoke() -> Any:
        return await factory()

    return asyncio.run_coroutine_threadsafe(_invoke(), loop).result(REQUEST_TIMEOUT_SECONDS)


def create_app(controller: Orchestrator, config: Optional[AppConfig] = None) -> Flask:
    app = Flask(__name__)
    log = logging.getLogger("admin")

    # Optional simple token auth (disabled by default)
    _admin_token = config.admin_token if config is not None else None
    if _admin_token:
        @app.before_request
        def _require_token():  # type: ignore[no-redef]
            if request.path == "/admin/health":
                return None
            if request.headers.get("X-Litfass-Token") != _admin_token:
                return {"error": "unauthorized"}, 401

    @app.get("/admin/health")
    def health():  # type: ignore[no-redef]
        """Health check endpoint."""
        return {"ok": True}

    @app.get("/admin/status")
    def status():  # type: ignore[no-redef]
        """Lifecycle state and per-display rotation state."""
        if controller.state == IDLE or controller.loop is None:
            return jsonify({"state": controller.state, "runs": controller.runs, "displays": []})
        try:
            return jsonify(_call_in_loop(controller, controller.snapshot))
        except Exception as e:
            log.warning("Status request failed: %s", e)
            return {"error": str(e)}, 503

    @app.post("/admin/restart")
    def restart():  # type: ignore[no-redef]
        """Request a restart; picked up by the topology watch on its next wake."""
        if controller.state == IDLE:
            return {"error": "not running"}, 409

        async def _request() -> None:
            controller.request_restart()

        try:
            _call_in_loop(controller, _request)
        except Exception as e:
            return {"error": str(e)}, 503
        log.info("Restart requested via admin API")
        return {"ok": True, "restart_requested": True}, 202

    @app.post("/admin/exit")
    def exit_():  # type: ignore[no-redef]
        """Close every render session, which ends the run."""
        if controller.state == IDLE:
            return {"error": "not running"}, 409
        try:
            _call_in_loop(controller, controller.exit)
        except Exception as e:
            return {"error": str(e)}, 503
        log.info("Exit requested via admin API")
        return {"ok": True}

    return app


def start_admin_server(controller: Orchestrator, config: AppConfig) -> threading.Thread:
    app = create_app(controller, config)
    thread = threading.Thread(
        target=lambda: app.run(host=config.admin_host, port=config.admin_port, debug=False, use_reloader=False),
        name="AdminServer",
        daemon=True,
    )
    thread.start()
    logging.getLogger("admin").info("Admin API on http://%s:%d/admin/status", config.admin_host, config.admin_port)
    return thread
