from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from warehouse_ops.db.init_db import init_db
from warehouse_ops.errors import register_error_handlers
from warehouse_ops.logging_config import configure_app_logging
from warehouse_ops.routers import admin, auth, health, production, productivity
from warehouse_ops.security.config import load_security_config
from warehouse_ops.security.dependencies import enforce_security
from warehouse_ops.settings import get_settings

logger = logging.getLogger(__name__)


def create_app(*, initialize_db: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        if initialize_db:
            init_db(seed=settings.seed_demo_data)
            logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    # Every route passes through the security dependency; handlers never check permissions themselves.
    app = FastAPI(title="Warehouse Operations", dependencies=[Depends(enforce_security)], lifespan=lifespan)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(production.router)
    app.include_router(productivity.router)

    return app


app = create_app()
