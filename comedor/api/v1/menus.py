"""
Rutas de menús
Lecturas públicas; escritura solo para administradores.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...core.security import actor_from_claims, require_admin
from ...schemas.menu import (
    MenuCloneRequest,
    MenuCreateRequest,
    MenuStatusUpdateRequest,
    MenuUpdateRequest,
)
from ...services import MenuService
from ..deps import get_menu_service

router = APIRouter()


@router.post("", status_code=201)
def create_menu(
    req: MenuCreateRequest,
    service: MenuService = Depends(get_menu_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    """Crear el menú de una fecha"""
    menu = service.create(req, actor_from_claims(claims))
    return create_success_response(menu, "Menú creado")


@router.get("")
def list_menus(
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1),
    service: MenuService = Depends(get_menu_service)
):
    """Listar menús, fecha más reciente primero"""
    return create_success_response(service.find_all(skip, take), "Consulta exitosa")


@router.get("/by-date/{date}")
def get_menu_by_date(
    date: str,
    cc: Optional[str] = Query(None, description="Cédula para marcar si ya tiene reserva"),
    service: MenuService = Depends(get_menu_service)
):
    """Menú de una fecha (YYYY-MM-DD)"""
    if cc:
        return create_success_response(service.find_by_date_for_user(date, cc), "Consulta exitosa")
    return create_success_response(service.find_by_date(date), "Consulta exitosa")


@router.get("/{menu_id}")
def get_menu(menu_id: str, service: MenuService = Depends(get_menu_service)):
    return create_success_response(service.find_one(menu_id), "Consulta exitosa")


@router.post("/{menu_id}/clone", status_code=201)
def clone_menu(
    menu_id: str,
    req: MenuCloneRequest,
    service: MenuService = Depends(get_menu_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    """Clonar un menú a otra fecha"""
    menu = service.clone(menu_id, req.date, actor_from_claims(claims))
    return create_success_response(menu, "Menú clonado")


@router.patch("/{menu_id}/status")
def update_menu_status(
    menu_id: str,
    req: MenuStatusUpdateRequest,
    service: MenuService = Depends(get_menu_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    menu = service.update_status(menu_id, req.status, actor_from_claims(claims))
    return create_success_response(menu, "Estado del menú actualizado")


@router.patch("/{menu_id}")
def update_menu(
    menu_id: str,
    req: MenuUpdateRequest,
    service: MenuService = Depends(get_menu_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    """Actualización parcial; las listas de opciones reemplazan el conjunto completo"""
    menu = service.update(menu_id, req, actor_from_claims(claims))
    return create_success_response(menu, "Menú actualizado")


@router.delete("/{menu_id}")
def delete_menu(
    menu_id: str,
    service: MenuService = Depends(get_menu_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    result = service.delete(menu_id, actor_from_claims(claims))
    return create_success_response(result, "Menú eliminado")
