from typing import Optional

from pydantic import BaseModel, Field


class WhitelistCreateRequest(BaseModel):
    cc: str = Field(..., min_length=2, max_length=20, description="Cédula")
    name: str = Field(..., min_length=2, max_length=120, description="Nombre completo")


class WhitelistUpdateRequest(BaseModel):
    cc: Optional[str] = Field(None, min_length=2, max_length=20)
    name: Optional[str] = Field(None, min_length=2, max_length=120)


class WhitelistLoginRequest(BaseModel):
    cc: str = Field(..., min_length=1)
