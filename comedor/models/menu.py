"""
Modelos del menú diario
"""

from datetime import date as Date
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, NamedRef, TimestampMixin


class ProteinOption(BaseModel):
    """Proteína permitida en un menú"""
    id: str = Field(..., description="ID de la opción")
    protein_type_id: str = Field(..., description="ID de la proteína")
    protein_type: Optional[NamedRef] = Field(None, description="Proteína")


class SideOption(BaseModel):
    """Acompañamiento permitido en un menú"""
    id: str = Field(..., description="ID de la opción")
    side_dish_id: str = Field(..., description="ID del acompañamiento")
    side_dish: Optional[NamedRef] = Field(None, description="Acompañamiento")


class Menu(BaseEntity, TimestampMixin):
    """Menú de una fecha"""
    id: str = Field(..., description="ID del menú")
    date: Date = Field(..., description="Fecha civil, única")
    day_of_week: Optional[str] = Field(None, description="DOM, LUN, ... SAB")
    soup_id: Optional[str] = None
    soup: Optional[NamedRef] = None
    drink_id: Optional[str] = None
    drink: Optional[NamedRef] = None
    default_protein_type_id: Optional[str] = None
    default_protein_type: Optional[NamedRef] = None
    status: Optional[str] = Field(None, description="Etiqueta de estado")
    protein_options: List[ProteinOption] = Field(default_factory=list)
    side_options: List[SideOption] = Field(default_factory=list)

    @property
    def protein_option_ids(self) -> List[str]:
        return [o.protein_type_id for o in self.protein_options]

    @property
    def side_option_ids(self) -> List[str]:
        return [o.side_dish_id for o in self.side_options]


class UserMenu(Menu):
    """Menú visto por un empleado: indica si ya tiene reserva"""
    has_reservation: bool = False
    reservation_id: Optional[str] = None
