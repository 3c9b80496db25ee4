from typing import Optional

from pydantic import BaseModel, Field


class CatalogCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    is_active: Optional[bool] = True


class CatalogUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
