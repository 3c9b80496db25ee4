"""
Servicios de negocio
Programador de menús, motor de reservas, agregador de resúmenes, catálogos,
lista blanca y bitácora.
"""

from dataclasses import dataclass
from typing import Dict

from ..config.settings import Settings, settings as default_settings
from ..core.clock import Clock
from ..core.database import DatabaseManager
from .catalog_service import CatalogService, build_catalog_services
from .log_service import LogService
from .menu_service import MenuService
from .reservation_service import ReservationService
from .summary_service import SummaryService
from .whitelist_service import WhitelistService


@dataclass
class Services:
    """Servicios cableados a una misma base de datos y un mismo reloj"""
    db: DatabaseManager
    clock: Clock
    menus: MenuService
    reservations: ReservationService
    summary: SummaryService
    whitelist: WhitelistService
    catalogs: Dict[str, CatalogService]
    logs: LogService


def build_services(db: DatabaseManager, clock: Clock, settings: Settings = default_settings) -> Services:
    whitelist = WhitelistService(db, clock, settings.page_size_max)
    return Services(
        db=db,
        clock=clock,
        menus=MenuService(db, clock, settings),
        reservations=ReservationService(db, clock, whitelist, settings),
        summary=SummaryService(db, clock),
        whitelist=whitelist,
        catalogs=build_catalog_services(db, clock, settings.page_size_max),
        logs=LogService(db, settings.page_size_max),
    )


__all__ = [
    "CatalogService",
    "LogService",
    "MenuService",
    "ReservationService",
    "Services",
    "SummaryService",
    "WhitelistService",
    "build_services",
]
