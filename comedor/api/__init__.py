"""
Rutas de la API
"""

from fastapi import APIRouter

from .v1 import catalogs, logs, menus, reservations, whitelist

api_router = APIRouter()

api_router.include_router(menus.router, prefix="/menus", tags=["Menús"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["Reservas"])
api_router.include_router(whitelist.router, prefix="/whitelist", tags=["Lista blanca"])
for _router, _prefix, _tag in catalogs.routers:
    api_router.include_router(_router, prefix=_prefix, tags=[_tag])
api_router.include_router(logs.router, prefix="/logs", tags=["Bitácora"])
