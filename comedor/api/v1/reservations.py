"""
Rutas de reservas
Crear, modificar, cancelar y consultar por cédula son públicas (el dueño se
identifica con su cédula). Listados, resumen, cierres y borrado son de
administración.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...core.security import actor_from_claims, require_admin
from ...schemas.reservation import (
    ReservationCancelRequest,
    ReservationCreateRequest,
    ReservationUpdateRequest,
)
from ...services import ReservationService, SummaryService
from ..deps import get_reservation_service, get_summary_service

router = APIRouter()


@router.post("", status_code=201)
def create_reservation(
    req: ReservationCreateRequest,
    service: ReservationService = Depends(get_reservation_service)
):
    """Crear reserva; para hoy se asigna la proteína por defecto"""
    reservation = service.create(req.cc, req.menu_id, req.protein_type_id)
    return create_success_response(reservation, "Reserva creada")


@router.get("")
def list_reservations(
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1),
    date: Optional[str] = Query(None, description="Filtrar por fecha del menú (YYYY-MM-DD)"),
    service: ReservationService = Depends(get_reservation_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.find_all(skip, take, date), "Consulta exitosa")


@router.get("/by-cc/{cc}")
def list_reservations_by_cc(
    cc: str,
    date: Optional[str] = Query(None, description="Filtrar por fecha del menú (YYYY-MM-DD)"),
    service: ReservationService = Depends(get_reservation_service)
):
    return create_success_response(service.find_by_cc(cc, date), "Consulta exitosa")


@router.get("/by-menu/{menu_id}")
def list_reservations_by_menu(
    menu_id: str,
    service: ReservationService = Depends(get_reservation_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.find_by_menu_id(menu_id), "Consulta exitosa")


@router.get("/summary/{date}")
def reservation_summary(
    date: str,
    service: SummaryService = Depends(get_summary_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    """Resumen de cocina: estado global y conteo por proteína"""
    return create_success_response(service.summary_by_date(date), "Consulta exitosa")


@router.patch("/bulk-served/{date}")
def bulk_mark_served(
    date: str,
    service: SummaryService = Depends(get_summary_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    result = service.bulk_mark_served(date, actor_from_claims(claims))
    return create_success_response(result, "Reservas marcadas como servidas")


@router.patch("/bulk-cancelled/{date}")
def bulk_mark_cancelled(
    date: str,
    service: SummaryService = Depends(get_summary_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    result = service.bulk_mark_cancelled(date, actor_from_claims(claims))
    return create_success_response(result, "Reservas canceladas")


@router.get("/{reservation_id}")
def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    return create_success_response(service.find_one(reservation_id), "Consulta exitosa")


@router.patch("/{reservation_id}/cancel")
def cancel_reservation(
    reservation_id: str,
    req: ReservationCancelRequest,
    service: ReservationService = Depends(get_reservation_service)
):
    reservation = service.cancel(reservation_id, req.cc)
    return create_success_response(reservation, "Reserva cancelada")


@router.patch("/{reservation_id}")
def update_reservation(
    reservation_id: str,
    req: ReservationUpdateRequest,
    service: ReservationService = Depends(get_reservation_service)
):
    """Cambiar proteína; si se envía side_dish_ids reemplaza todos los acompañamientos"""
    reservation = service.update(reservation_id, req.cc, req.protein_type_id, req.side_dish_ids)
    return create_success_response(reservation, "Reserva actualizada")


@router.delete("/{reservation_id}")
def delete_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
    claims: Dict[str, Any] = Depends(require_admin)
):
    result = service.delete(reservation_id, actor_from_claims(claims))
    return create_success_response(result, "Reserva eliminada")
