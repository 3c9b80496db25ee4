from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class LogEntry(BaseModel):
    log_id: int
    actor: Optional[str] = None
    action: str
    detail: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class LogPage(BaseModel):
    logs: List[LogEntry]
    total: int
    page: int
    size: int
    pages: int
