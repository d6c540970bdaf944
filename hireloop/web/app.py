"""FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from hireloop.config import AppConfig, load_config, validate_config
from hireloop.notifications.email_sender import build_email_sender

from .applications import register_error_handlers
from .applications import router as applications_router
from .cron import router as cron_router

logger = logging.getLogger("hireloop.web")


def _load_app_config() -> AppConfig:
    path = os.environ.get("HIRELOOP_CONFIG", "config.yaml")
    try:
        config = load_config(path)
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        config = AppConfig()
    for warning in validate_config(config):
        logger.warning("Config: %s", warning)
    return config


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: register the daily dispatch job
    if app.state.start_scheduler:
        from hireloop.scheduler import schedule_dispatch, shutdown_scheduler
        schedule_dispatch(app.state.config)

    yield

    # Shutdown
    if app.state.start_scheduler:
        shutdown_scheduler()


def create_app(config: AppConfig | None = None, email_sender=None, start_scheduler: bool = True) -> FastAPI:
    config = config or _load_app_config()

    app = FastAPI(title="Hireloop", lifespan=lifespan)
    app.state.config = config
    app.state.email_sender = email_sender or build_email_sender(config.email)
    app.state.start_scheduler = start_scheduler

    # Session middleware for cookie-based auth
    app.add_middleware(SessionMiddleware, secret_key=config.web.session_secret)

    register_error_handlers(app)
    app.include_router(applications_router)
    app.include_router(cron_router)

    @app.get("/health")
    def health():
        from hireloop.scheduler import get_scheduler_info
        return {"status": "ok", "scheduler": get_scheduler_info()}

    return app
