"""
Modelos de reservas
"""

from datetime import date as Date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, NamedRef, TimestampMixin


class ReservationStatus(str, Enum):
    """Estados de una reserva"""
    RESERVADA = "RESERVADA"          # el empleado eligió proteína para una fecha futura
    AUTO_ASIGNADA = "AUTO_ASIGNADA"  # se asignó la proteína por defecto tras el corte
    SERVIDA = "SERVIDA"              # terminal
    CANCELADA = "CANCELADA"          # terminal


TERMINAL_STATUSES = (ReservationStatus.SERVIDA, ReservationStatus.CANCELADA)
ACTIVE_STATUSES = (ReservationStatus.RESERVADA, ReservationStatus.AUTO_ASIGNADA)


class SummaryStatus(str, Enum):
    """Estado global de las reservas de una fecha"""
    SERVIDA = "SERVIDA"
    RESERVADA = "RESERVADA"
    CANCELADA = "CANCELADA"
    SIN_RESERVAS = "SIN_RESERVAS"


class SideDishSnapshot(BaseModel):
    """Acompañamiento con el nombre capturado al reservar"""
    id: str
    side_dish_id: Optional[str] = None
    name_snapshot: str


class ReservationMenuRef(BaseModel):
    id: str
    date: Date
    day_of_week: Optional[str] = None


class Reservation(BaseEntity, TimestampMixin):
    """Reserva completa"""
    id: str = Field(..., description="ID de la reserva")
    menu_id: str = Field(..., description="ID del menú")
    whitelist_entry_id: Optional[str] = Field(None, description="Entrada de lista blanca (puede haberse borrado)")
    cc: str = Field(..., description="Cédula capturada al reservar")
    name: str = Field(..., description="Nombre capturado al reservar")
    protein_type_id: str
    protein_type: Optional[NamedRef] = None
    status: ReservationStatus
    served_at: Optional[datetime] = None
    side_dishes: List[SideDishSnapshot] = Field(default_factory=list)
    menu: Optional[ReservationMenuRef] = None


class ProteinCount(BaseModel):
    protein_type_id: str
    protein_name: str
    count: int


class ReservationSummary(BaseModel):
    """Vista de cocina por fecha"""
    date: Date
    status: SummaryStatus
    proteins: List[ProteinCount] = Field(default_factory=list)


class BulkUpdateResult(BaseModel):
    date: Date
    status: ReservationStatus
    updated: int
