"""
Servicio de lista blanca
Autoriza cédulas a reservar. El motor de reservas la consulta vía find_by_cc.

Incluye la carga masiva desde hoja de cálculo (.xlsx o .csv) con columnas
"cc" y "name"/"nombre".
"""

import io
import logging
import secrets
import uuid
import zipfile
from typing import Any, Dict, List, Optional

import pandas as pd

from ..core.clock import Clock
from ..core.database import DatabaseManager, placeholders
from ..core.exceptions import AuthenticationError, NotFoundError, ValidationError
from ..models.base import DeleteResult
from ..models.whitelist import (
    BulkImportError,
    BulkImportResult,
    WhitelistEntry,
    WhitelistLogin,
    WhitelistPage,
)

logger = logging.getLogger(__name__)

SELECT_FIELDS = "id, cc, name, enabled, public_token, created_at, updated_at"
DUPLICATE_CC_MESSAGE = "Ya existe un empleado registrado con esta cédula"

CC_HEADERS = ("cc",)
NAME_HEADERS = ("name", "nombre")


class WhitelistService:
    """Servicio de lista blanca"""

    def __init__(self, db: DatabaseManager, clock: Clock, page_size_max: int = 200):
        self.db = db
        self.clock = clock
        self.page_size_max = page_size_max

    def find_by_cc(self, cc: str, conn=None) -> Optional[Dict[str, Any]]:
        """Puerta de la lista blanca: {id, cc, name, enabled} o None"""
        return self.db.fetch_one(
            "SELECT id, cc, name, enabled FROM whitelist_entries WHERE cc = ?",
            [(cc or "").strip()], conn
        )

    def create(self, cc: str, name: str) -> WhitelistEntry:
        cc, name = (cc or "").strip(), (name or "").strip()
        if not cc or not name:
            raise ValidationError("La cédula y el nombre son obligatorios")
        entry_id = str(uuid.uuid4())
        now = self.clock.timestamp()
        with self.db.transaction(conflict_message=DUPLICATE_CC_MESSAGE) as conn:
            conn.execute(
                """
                INSERT INTO whitelist_entries(id, cc, name, enabled, public_token, created_at, updated_at)
                VALUES (?,?,?,TRUE,?,?,?)
                """,
                [entry_id, cc, name, self._new_token(), now, now]
            )
        logger.info("CREATE whitelist cc=%s", cc)
        return self.find_one(entry_id)

    def find_all(self, q: Optional[str] = None, enabled: Optional[bool] = None,
                 skip: int = 0, take: int = 50) -> WhitelistPage:
        if take > self.page_size_max:
            raise ValidationError(f"take máximo es {self.page_size_max}")
        clauses, params = [], []
        if enabled is not None:
            clauses.append("enabled = ?")
            params.append(enabled)
        if q and q.strip():
            clauses.append("(name ILIKE ? OR cc ILIKE ?)")
            params.extend([f"%{q.strip()}%"] * 2)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        total = self.db.fetch_value(f"SELECT COUNT(*) FROM whitelist_entries {where}", params)
        rows = self.db.fetch_all(
            f"SELECT {SELECT_FIELDS} FROM whitelist_entries {where} ORDER BY name ASC LIMIT ? OFFSET ?",
            params + [take, skip]
        )
        return WhitelistPage(data=[WhitelistEntry(**r) for r in rows], total=total or 0)

    def find_one(self, entry_id: str) -> WhitelistEntry:
        row = self.db.fetch_one(f"SELECT {SELECT_FIELDS} FROM whitelist_entries WHERE id = ?", [entry_id])
        if not row:
            raise NotFoundError("Entrada de lista blanca no encontrada")
        return WhitelistEntry(**row)

    def login(self, cc: str) -> WhitelistLogin:
        row = self.db.fetch_one(
            "SELECT public_token, cc, name, enabled FROM whitelist_entries WHERE cc = ?",
            [(cc or "").strip()]
        )
        if not row or not row["enabled"]:
            raise AuthenticationError("Cédula no encontrada o inactiva en la lista de acceso")
        return WhitelistLogin(public_token=row["public_token"], cc=row["cc"], name=row["name"])

    def update(self, entry_id: str, cc: Optional[str] = None, name: Optional[str] = None) -> WhitelistEntry:
        data = {}
        if cc is not None:
            data["cc"] = cc.strip()
        if name is not None:
            data["name"] = name.strip()
        if not data:
            raise ValidationError("Debe enviar al menos un campo (cc o name)")

        self.find_one(entry_id)
        assignments = ", ".join(f"{column} = ?" for column in data)
        with self.db.transaction(conflict_message=DUPLICATE_CC_MESSAGE) as conn:
            conn.execute(
                f"UPDATE whitelist_entries SET {assignments}, updated_at = ? WHERE id = ?",
                list(data.values()) + [self.clock.timestamp(), entry_id]
            )
        return self.find_one(entry_id)

    def toggle_enabled(self, entry_id: str) -> WhitelistEntry:
        entry = self.find_one(entry_id)
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE whitelist_entries SET enabled = ?, updated_at = ? WHERE id = ?",
                [not entry.enabled, self.clock.timestamp(), entry_id]
            )
        return self.find_one(entry_id)

    def delete(self, entry_id: str) -> DeleteResult:
        """Las reservas conservan cc y nombre; solo pierden el enlace a la entrada"""
        self.find_one(entry_id)
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE reservations SET whitelist_entry_id = NULL WHERE whitelist_entry_id = ?",
                [entry_id]
            )
            conn.execute("DELETE FROM whitelist_entries WHERE id = ?", [entry_id])
        logger.info("DELETE whitelist id=%s", entry_id)
        return DeleteResult(id=entry_id)

    def bulk_create(self, content: bytes, filename: str = "") -> BulkImportResult:
        """Carga masiva; las cédulas ya registradas se omiten"""
        logger.info("Iniciando carga masiva de lista blanca: %s", filename or "(sin nombre)")
        rows = self._read_rows(content, filename)
        if not rows:
            raise ValidationError("El archivo está vacío o no tiene formato válido de tabla.")

        headers = {str(k).strip().lower() for k in rows[0].keys()}
        if not headers & set(CC_HEADERS) or not headers & set(NAME_HEADERS):
            raise ValidationError('El archivo debe contener las columnas "cc" y "name" (o "nombre").')

        errors: List[BulkImportError] = []
        valid: Dict[str, str] = {}
        for index, row in enumerate(rows):
            normalized = {str(k).strip().lower(): row[k] for k in row}
            cc = self._cell(normalized, CC_HEADERS)
            name = self._cell(normalized, NAME_HEADERS)
            line = index + 2  # fila 1 es el encabezado

            if len(cc) < 2:
                errors.append(BulkImportError(row=line, cc=cc or "(vacío)", reason="cc ausente o inválida"))
                continue
            if len(name) < 2:
                errors.append(BulkImportError(row=line, cc=cc, reason="nombre ausente o inválido"))
                continue
            valid.setdefault(cc, name)

        if not valid:
            logger.warning("Carga masiva sin filas válidas de %d. Errores: %d", len(rows), len(errors))
            return BulkImportResult(created=0, skipped=0, errors=errors)

        now = self.clock.timestamp()
        with self.db.transaction(conflict_message=DUPLICATE_CC_MESSAGE) as conn:
            ccs = list(valid)
            existing = {
                r[0] for r in conn.execute(
                    f"SELECT cc FROM whitelist_entries WHERE cc IN ({placeholders(ccs)})", ccs
                ).fetchall()
            }
            created = 0
            for cc, name in valid.items():
                if cc in existing:
                    continue
                conn.execute(
                    """
                    INSERT INTO whitelist_entries(id, cc, name, enabled, public_token, created_at, updated_at)
                    VALUES (?,?,?,TRUE,?,?,?)
                    """,
                    [str(uuid.uuid4()), cc, name, self._new_token(), now, now]
                )
                created += 1

        skipped = len(rows) - len(errors) - created
        logger.info("Carga masiva terminada. Creados: %d, omitidos: %d, inválidos: %d",
                    created, skipped, len(errors))
        return BulkImportResult(created=created, skipped=skipped, errors=errors)

    def _read_rows(self, content: bytes, filename: str) -> List[Dict[str, Any]]:
        buffer = io.BytesIO(content)
        try:
            if filename.lower().endswith(".csv"):
                frame = pd.read_csv(buffer, dtype=str, keep_default_na=False)
            else:
                frame = pd.read_excel(buffer, dtype=str, keep_default_na=False, engine="openpyxl")
        except (ValueError, KeyError, OSError, zipfile.BadZipFile, pd.errors.ParserError) as e:
            raise ValidationError(f"No se pudo leer el archivo: {e}")
        return frame.to_dict(orient="records")

    @staticmethod
    def _cell(row: Dict[str, Any], headers) -> str:
        for header in headers:
            value = row.get(header)
            if value is not None and str(value).strip():
                return str(value).strip()
        return ""

    @staticmethod
    def _new_token() -> str:
        return secrets.token_urlsafe(24)
