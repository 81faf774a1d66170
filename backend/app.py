"""
Warmlink Backend Application

FastAPI front for one heater controller: keeps a device session running for
the lifetime of the process and exposes its views and commands over HTTP.
"""

import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

# Add repo root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from backend import api, log_config  # noqa: F401, E402
from core.warmlink.exceptions import ConfigurationError  # noqa: E402
from core.warmlink.session import DeviceSession  # noqa: E402
from core.warmlink.settings import load_settings  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for startup/shutdown."""
    logger.info("Warmlink starting")

    routes = [
        f"{getattr(route, 'path', '?')} - {getattr(route, 'methods', ['MOUNT'])}"
        for route in app.routes
    ]
    logger.info(f"Registered routes: {routes}")

    session = None
    try:
        settings = load_settings()
        session = DeviceSession(settings)
    except ConfigurationError as e:
        logger.warning(f"⚠️ Device session disabled: {e}")

    if session:
        await session.start()
        api.device_session = session
        logger.info(f"🔥 Connected to heater controller at {session.settings.base_url}")

    yield

    logger.info("Warmlink shutting down")
    if session:
        api.device_session = None
        await session.stop()


app = FastAPI(
    title="Warmlink API",
    description="Client for a heater controller: status, toggles, calibration and ready-by scheduling",
    version="0.1.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions gracefully."""
    import traceback

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(f"Unhandled exception: {exc}")
    logger.error(f"Request path: {request.url.path}")
    logger.error(f"Stack trace:\n{tb_str}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "message": "Internal server error",
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api.router)


# For development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
