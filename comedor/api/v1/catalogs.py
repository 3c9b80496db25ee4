"""
Rutas de catálogos: proteínas, acompañamientos, sopas y bebidas
Las cuatro comparten la misma forma, así que se generan con una fábrica.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...core.error_handler import create_success_response
from ...core.security import require_admin
from ...schemas.catalog import CatalogCreateRequest, CatalogUpdateRequest
from ...services import CatalogService


def build_catalog_router(table: str) -> APIRouter:
    router = APIRouter()

    def get_service(request: Request) -> CatalogService:
        return request.app.state.services.catalogs[table]

    @router.post("", status_code=201)
    def create_item(
        req: CatalogCreateRequest,
        service: CatalogService = Depends(get_service),
        claims: Dict[str, Any] = Depends(require_admin)
    ):
        return create_success_response(service.create(req.name, req.is_active), "Creado")

    @router.get("")
    def list_items(
        q: Optional[str] = Query(None, description="Búsqueda por nombre"),
        active: Optional[bool] = Query(None),
        skip: int = Query(0, ge=0),
        take: int = Query(50, ge=1),
        service: CatalogService = Depends(get_service)
    ):
        return create_success_response(service.find_all(q, active, skip, take), "Consulta exitosa")

    @router.get("/{item_id}")
    def get_item(item_id: str, service: CatalogService = Depends(get_service)):
        return create_success_response(service.find_one(item_id), "Consulta exitosa")

    @router.patch("/{item_id}/deactivate")
    def deactivate_item(
        item_id: str,
        service: CatalogService = Depends(get_service),
        claims: Dict[str, Any] = Depends(require_admin)
    ):
        return create_success_response(service.deactivate(item_id), "Desactivado")

    @router.patch("/{item_id}")
    def rename_item(
        item_id: str,
        req: CatalogUpdateRequest,
        service: CatalogService = Depends(get_service),
        claims: Dict[str, Any] = Depends(require_admin)
    ):
        return create_success_response(service.rename(item_id, req.name), "Actualizado")

    @router.delete("/{item_id}")
    def delete_item(
        item_id: str,
        service: CatalogService = Depends(get_service),
        claims: Dict[str, Any] = Depends(require_admin)
    ):
        return create_success_response(service.delete(item_id), "Eliminado")

    return router


# (router, prefijo, etiqueta)
routers = [
    (build_catalog_router("protein_types"), "/proteins", "Proteínas"),
    (build_catalog_router("side_dishes"), "/side-dishes", "Acompañamientos"),
    (build_catalog_router("soups"), "/soups", "Sopas"),
    (build_catalog_router("drinks"), "/drinks", "Bebidas"),
]
