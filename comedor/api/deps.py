"""
Dependencias de FastAPI: servicios cableados en app.state
"""

from typing import Dict

from fastapi import Request

from ..services import (
    CatalogService,
    LogService,
    MenuService,
    ReservationService,
    Services,
    SummaryService,
    WhitelistService,
)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_menu_service(request: Request) -> MenuService:
    return get_services(request).menus


def get_reservation_service(request: Request) -> ReservationService:
    return get_services(request).reservations


def get_summary_service(request: Request) -> SummaryService:
    return get_services(request).summary


def get_whitelist_service(request: Request) -> WhitelistService:
    return get_services(request).whitelist


def get_catalog_services(request: Request) -> Dict[str, CatalogService]:
    return get_services(request).catalogs


def get_log_service(request: Request) -> LogService:
    return get_services(request).logs
