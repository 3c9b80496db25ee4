"""
Esquemas de solicitud del menú
"""

from datetime import date as Date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class MenuCreateRequest(BaseModel):
    """Creación de menú"""
    date: Date = Field(..., description="Fecha del menú (YYYY-MM-DD)")
    soup_id: Optional[str] = Field(None, description="ID de la sopa")
    drink_id: Optional[str] = Field(None, description="ID de la bebida")
    default_protein_type_id: Optional[str] = Field(
        None, description="Proteína por defecto; si se omite se usa la de respaldo"
    )
    protein_option_ids: Optional[List[str]] = Field(None, description="Proteínas permitidas")
    side_option_ids: Optional[List[str]] = Field(None, description="Acompañamientos permitidos")


class MenuUpdateRequest(BaseModel):
    """
    Actualización parcial del menú.

    Solo se aplican los campos presentes en el cuerpo. Las listas de opciones,
    cuando vienen (incluso vacías), reemplazan el conjunto completo.
    """
    soup_id: Optional[str] = None
    drink_id: Optional[str] = None
    default_protein_type_id: Optional[str] = None
    protein_option_ids: Optional[List[str]] = Field(None, description="Reemplaza TODAS las proteínas")
    side_option_ids: Optional[List[str]] = Field(None, description="Reemplaza TODOS los acompañamientos")

    @field_validator("protein_option_ids", "side_option_ids")
    @classmethod
    def list_not_null(cls, v):
        if v is None:
            raise ValueError("use una lista vacía para vaciar el conjunto")
        return v


class MenuCloneRequest(BaseModel):
    date: Date = Field(..., description="Fecha destino (YYYY-MM-DD)")


class MenuStatusUpdateRequest(BaseModel):
    status: str = Field(..., min_length=1, max_length=40, description="Nueva etiqueta de estado")
