"""
Rutas de la lista blanca
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from ...core.error_handler import create_success_response
from ...core.exceptions import ValidationError
from ...core.security import require_admin
from ...schemas.whitelist import (
    WhitelistCreateRequest,
    WhitelistLoginRequest,
    WhitelistUpdateRequest,
)
from ...services import WhitelistService
from ..deps import get_whitelist_service

router = APIRouter()

ALLOWED_EXTENSIONS = (".xlsx", ".csv")


@router.post("/login")
def whitelist_login(
    req: WhitelistLoginRequest,
    service: WhitelistService = Depends(get_whitelist_service)
):
    """Ingreso de empleados por cédula"""
    return create_success_response(service.login(req.cc), "Ingreso exitoso")


@router.post("/bulk", status_code=201)
async def bulk_create_whitelist(
    file: UploadFile = File(..., description="Archivo .xlsx o .csv con columnas cc y name"),
    service: WhitelistService = Depends(get_whitelist_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    filename = file.filename or ""
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        raise ValidationError("Solo se aceptan archivos .xlsx o .csv")
    content = await file.read()
    if not content:
        raise ValidationError("El archivo está vacío")
    return create_success_response(service.bulk_create(content, filename), "Carga masiva procesada")


@router.post("", status_code=201)
def create_whitelist_entry(
    req: WhitelistCreateRequest,
    service: WhitelistService = Depends(get_whitelist_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.create(req.cc, req.name), "Empleado registrado")


@router.get("")
def list_whitelist(
    q: Optional[str] = Query(None, description="Búsqueda por nombre o cédula"),
    enabled: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1),
    service: WhitelistService = Depends(get_whitelist_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.find_all(q, enabled, skip, take), "Consulta exitosa")


@router.get("/{entry_id}")
def get_whitelist_entry(
    entry_id: str,
    service: WhitelistService = Depends(get_whitelist_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.find_one(entry_id), "Consulta exitosa")


@router.patch("/{entry_id}/toggle")
def toggle_whitelist_entry(
    entry_id: str,
    service: WhitelistService = Depends(get_whitelist_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.toggle_enabled(entry_id), "Estado actualizado")


@router.patch("/{entry_id}")
def update_whitelist_entry(
    entry_id: str,
    req: WhitelistUpdateRequest,
    service: WhitelistService = Depends(get_whitelist_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.update(entry_id, req.cc, req.name), "Empleado actualizado")


@router.delete("/{entry_id}")
def delete_whitelist_entry(
    entry_id: str,
    service: WhitelistService = Depends(get_whitelist_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.delete(entry_id), "Empleado eliminado")
