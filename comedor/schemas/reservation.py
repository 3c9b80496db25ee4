"""
Esquemas de solicitud de reservas
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ReservationCreateRequest(BaseModel):
    cc: str = Field(..., min_length=1, description="Cédula; debe estar en la lista blanca")
    menu_id: str = Field(..., description="ID del menú")
    protein_type_id: str = Field(..., description="Proteína elegida")


class ReservationUpdateRequest(BaseModel):
    cc: str = Field(..., min_length=1, description="Cédula del dueño de la reserva")
    protein_type_id: str = Field(..., description="Nueva proteína")
    side_dish_ids: Optional[List[str]] = Field(
        None, description="Si viene, reemplaza todos los acompañamientos"
    )


class ReservationCancelRequest(BaseModel):
    cc: str = Field(..., min_length=1, description="Cédula del dueño de la reserva")
