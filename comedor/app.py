"""
Comedor - API de menús y reservas del comedor
Punto de entrada de la aplicación FastAPI

Módulos principales:
- Catálogos (proteínas, acompañamientos, sopas, bebidas)
- Programación de menús por fecha
- Reservas con regla de corte y asignación automática
- Resumen de cocina y cierres masivos
- Lista blanca de empleados
- Bitácora de operaciones

Stack: FastAPI + DuckDB + JWT (proveedor externo)
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .config.settings import Settings, settings as default_settings
from .core.clock import Clock
from .core.database import DatabaseManager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .core.logger import init_logging
from .core.security import SecurityManager
from .jobs.day_close import DayCloseScheduler
from .services import build_services

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, db: Optional[DatabaseManager] = None,
               clock: Optional[Clock] = None) -> FastAPI:
    """Crear la aplicación; las pruebas inyectan su propia base, reloj y configuración"""
    settings = settings or default_settings
    clock = clock or Clock(settings.utc_offset_hours)
    db = db or DatabaseManager(clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_logging(settings.log_level)
        db.init_database()
        logger.info("Base de datos inicializada: %s", db.db_path)

        scheduler = None
        if settings.day_close_enabled:
            scheduler = DayCloseScheduler(app.state.services, settings.day_close_time, settings.day_close_action)
            scheduler.start()

        yield

        if scheduler is not None:
            await scheduler.stop()
        db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="API de menús y reservas del comedor",
        debug=settings.debug,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.security = SecurityManager(settings)
    app.state.services = build_services(db, clock, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check():
        try:
            db.fetch_value("SELECT 1")
            return {
                "status": "healthy",
                "version": settings.api_version,
                "database": "connected"
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "version": settings.api_version,
                "database": f"error: {str(e)}"
            }

    @app.get("/")
    async def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "description": "API de menús y reservas del comedor"
        }

    return app


app = create_app()
