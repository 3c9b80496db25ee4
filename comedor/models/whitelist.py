"""
Lista blanca de empleados autorizados a reservar
"""

from typing import List

from pydantic import BaseModel, Field

from .base import BaseEntity, TimestampMixin


class WhitelistEntry(BaseEntity, TimestampMixin):
    id: str
    cc: str = Field(..., description="Cédula, única")
    name: str
    enabled: bool = True
    public_token: str


class WhitelistPage(BaseModel):
    data: List[WhitelistEntry]
    total: int


class WhitelistLogin(BaseModel):
    public_token: str
    cc: str
    name: str


class BulkImportError(BaseModel):
    row: int
    cc: str
    reason: str


class BulkImportResult(BaseModel):
    created: int
    skipped: int
    errors: List[BulkImportError] = Field(default_factory=list)
