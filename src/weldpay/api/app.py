"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from weldpay.api.error_handlers import register_error_handlers
from weldpay.api.routes import health, salaries, work
from weldpay.core.config import AppSettings
from weldpay.core.observability import setup_logging
from weldpay.payroll.service import PayrollService

logger = logging.getLogger(__name__)


def create_app(settings: AppSettings | None = None, service: PayrollService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    A pre-built ``service`` (e.g. over in-memory stores) skips backend wiring.
    """
    settings = settings or AppSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings.log_level, settings.log_format)
        if getattr(app.state, "service", None) is None:
            app.state.service = PayrollService.from_settings(settings)
        logger.info(
            "WeldPay API started (%s, %s storage)", settings.environment, settings.storage_backend,
        )
        yield
        logger.info("WeldPay API shutting down")

    app = FastAPI(
        title="WeldPay Payroll Core",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service
    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(work.router, prefix="/work")
    app.include_router(salaries.router, prefix="/work")
    return app
