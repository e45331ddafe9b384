"""FastAPI entrypoint for the NPC sync coordinator."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from packages.npcsync_core.agent.runtime import Scene

from .routers.agents import router as agents_router
from .routers.directory import router as directory_router
from .routers.scene import router as scene_router
from .services.scene_runtime import autostart_enabled, build_scene_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("npcsync_api")


def create_app(scene: Scene | None = None) -> FastAPI:
    """Build the API; a scene passed here is used instead of loading one on startup."""
    app = FastAPI(title="NPC Sync API", version="0.1.0")
    app.state.scene = scene

    cors_origins = [o.strip() for o in os.environ.get("NPCSYNC_CORS_ORIGINS", "*").split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(agents_router)
    app.include_router(scene_router)
    app.include_router(directory_router)

    @app.on_event("startup")
    def startup() -> None:
        logger.info("[STARTUP] NPC Sync API starting up at %s", datetime.now(timezone.utc).isoformat())
        if app.state.scene is None:
            try:
                app.state.scene = build_scene_from_env()
            except Exception as e:
                logger.error("[STARTUP] Failed to load scene: %s", e)
                raise

        current: Scene = app.state.scene
        connection = current.client.check_connection()
        if connection.ok:
            logger.info("[STARTUP] Remote service reachable")
        else:
            logger.warning("[STARTUP] Remote service unreachable (%s); agents will stand still", connection.error_code)

        if autostart_enabled():
            current.start()
            logger.info("[STARTUP] Scene autostart is enabled")
        logger.info("[STARTUP] NPC Sync API startup complete")

    @app.on_event("shutdown")
    def shutdown() -> None:
        current = app.state.scene
        if current is not None:
            current.stop()

    @app.get("/healthz")
    def healthz(request: Request):
        current = request.app.state.scene
        if current is None:
            return JSONResponse(status_code=503, content={"status": "error", "detail": "Scene not loaded"})
        return {"status": "ok", "scene": current.name, "running": current.is_running()}

    return app


app = create_app()
