"""
Rutas de la bitácora (administración)
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...core.security import require_admin
from ...services import LogService
from ..deps import get_log_service

router = APIRouter()


@router.get("")
def list_logs(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1),
    action: Optional[str] = Query(None, description="Filtrar por acción, p. ej. create_reservation"),
    service: LogService = Depends(get_log_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    """Bitácora de operaciones, más reciente primero"""
    return create_success_response(service.find_all(page, size, action), "Consulta exitosa")
