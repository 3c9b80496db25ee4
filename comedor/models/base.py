"""
Modelos base
Clases comunes de las entidades
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TimestampMixin(BaseModel):
    """Marcas de tiempo"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BaseEntity(BaseModel):
    """Entidad base"""

    model_config = {"from_attributes": True, "use_enum_values": True}


class NamedRef(BaseModel):
    """Referencia resumida {id, name} a otra entidad"""
    id: str = Field(..., description="ID")
    name: str = Field(..., description="Nombre")


class DeleteResult(BaseModel):
    deleted: bool = True
    id: str
