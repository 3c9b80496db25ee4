"""
Bitácora de auditoría
Lectura paginada de la tabla logs, más reciente primero.
"""

import json
from typing import Optional

from ..core.database import DatabaseManager
from ..core.exceptions import ValidationError
from ..models.log import LogEntry, LogPage


class LogService:
    """Consulta de la bitácora"""

    def __init__(self, db: DatabaseManager, page_size_max: int = 200):
        self.db = db
        self.page_size_max = page_size_max

    def find_all(self, page: int = 1, size: int = 20, action: Optional[str] = None) -> LogPage:
        if page < 1 or size < 1:
            raise ValidationError("page y size deben ser positivos")
        if size > self.page_size_max:
            raise ValidationError(f"size máximo es {self.page_size_max}")

        where, params = "", []
        if action:
            where, params = "WHERE action = ?", [action]
        total = self.db.fetch_value(f"SELECT COUNT(*) FROM logs {where}", params) or 0
        rows = self.db.fetch_all(
            f"""
            SELECT log_id, actor, action, detail_json, created_at
            FROM logs {where}
            ORDER BY created_at DESC, log_id DESC
            LIMIT ? OFFSET ?
            """,
            params + [size, (page - 1) * size]
        )

        logs = []
        for row in rows:
            try:
                detail = json.loads(row["detail_json"]) if row["detail_json"] else {}
            except (json.JSONDecodeError, TypeError):
                detail = {"raw": row["detail_json"]}
            logs.append(LogEntry(
                log_id=row["log_id"],
                actor=row["actor"],
                action=row["action"],
                detail=detail,
                created_at=row["created_at"],
            ))
        return LogPage(logs=logs, total=total, page=page, size=size, pages=(total + size - 1) // size)
