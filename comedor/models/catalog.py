"""
Catálogos de referencia: proteínas, acompañamientos, sopas y bebidas
"""

from pydantic import Field

from .base import BaseEntity, TimestampMixin


class CatalogItem(BaseEntity, TimestampMixin):
    """Elemento de catálogo con borrado lógico por is_active"""
    id: str = Field(..., description="ID")
    name: str = Field(..., description="Nombre único")
    is_active: bool = Field(True, description="Activo")
