"""
Conexión y gestión de la base de datos DuckDB

Funciones principales:
- Definición del esquema (catálogos, lista blanca, menús, reservas, bitácora)
- Conexión única protegida con RLock
- Transacciones todo-o-nada con traducción central de errores del almacén
- Comprobación de referencias (claves foráneas) antes de escribir
"""

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Iterable, List, Optional, Sequence, Tuple

import duckdb

from ..config.settings import settings
from .clock import Clock
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    DatabaseError,
    InvalidReferenceError,
)

logger = logging.getLogger(__name__)

CATALOG_TABLES = ("protein_types", "side_dishes", "soups", "drinks")

SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS protein_types (
  id TEXT PRIMARY KEY,
  name TEXT UNIQUE NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP,
  updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS side_dishes (
  id TEXT PRIMARY KEY,
  name TEXT UNIQUE NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP,
  updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS soups (
  id TEXT PRIMARY KEY,
  name TEXT UNIQUE NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP,
  updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS drinks (
  id TEXT PRIMARY KEY,
  name TEXT UNIQUE NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP,
  updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS whitelist_entries (
  id TEXT PRIMARY KEY,
  cc TEXT UNIQUE NOT NULL,
  name TEXT NOT NULL,
  enabled BOOLEAN DEFAULT TRUE,
  public_token TEXT UNIQUE NOT NULL,
  created_at TIMESTAMP,
  updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS menus (
  id TEXT PRIMARY KEY,
  date DATE UNIQUE NOT NULL,
  day_of_week TEXT,
  soup_id TEXT,
  drink_id TEXT,
  default_protein_type_id TEXT,
  status TEXT,
  created_at TIMESTAMP,
  updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS menu_protein_options (
  id TEXT PRIMARY KEY,
  menu_id TEXT NOT NULL,
  protein_type_id TEXT NOT NULL,
  UNIQUE (menu_id, protein_type_id)
);

CREATE TABLE IF NOT EXISTS menu_side_options (
  id TEXT PRIMARY KEY,
  menu_id TEXT NOT NULL,
  side_dish_id TEXT NOT NULL,
  UNIQUE (menu_id, side_dish_id)
);

CREATE TABLE IF NOT EXISTS reservations (
  id TEXT PRIMARY KEY,
  menu_id TEXT NOT NULL,
  whitelist_entry_id TEXT,
  cc TEXT NOT NULL,
  name TEXT NOT NULL,
  protein_type_id TEXT NOT NULL,
  status TEXT CHECK(status IN ('RESERVADA','AUTO_ASIGNADA','SERVIDA','CANCELADA')) NOT NULL,
  served_at TIMESTAMP,
  created_at TIMESTAMP,
  updated_at TIMESTAMP,
  UNIQUE (menu_id, cc)
);

CREATE INDEX IF NOT EXISTS idx_reservations_cc ON reservations(cc);

CREATE TABLE IF NOT EXISTS reservation_side_dishes (
  id TEXT PRIMARY KEY,
  reservation_id TEXT NOT NULL,
  side_dish_id TEXT,
  name_snapshot TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_reservation_side_dishes_res ON reservation_side_dishes(reservation_id);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  actor TEXT,
  action TEXT,
  detail_json TEXT,
  created_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


def translate_store_error(error: Exception, conflict_message: Optional[str] = None) -> BaseApplicationError:
    """Traduce una excepción de DuckDB a la taxonomía de la aplicación"""
    if isinstance(error, BaseApplicationError):
        return error
    if isinstance(error, duckdb.ConstraintException):
        return ConflictError(
            conflict_message or "El registro ya existe",
            details={"store_error": str(error)}
        )
    if isinstance(error, duckdb.TransactionException):
        return ConflictError(
            "Conflicto de concurrencia, intente de nuevo",
            details={"store_error": str(error)}
        )
    return DatabaseError(f"Fallo en la base de datos: {error}")


def _rows_as_dicts(cursor) -> List[Dict[str, Any]]:
    columns = [col[0] for col in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def placeholders(values: Sequence[Any]) -> str:
    return ",".join(["?"] * len(values))


class DatabaseManager:
    """Gestor de base de datos: conexión, esquema y transacciones"""

    def __init__(self, db_path: Optional[str] = None, clock: Optional[Clock] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or self._get_db_path_from_settings()
        self.clock = clock or Clock(settings.utc_offset_hours)

    def _get_db_path_from_settings(self) -> str:
        db_url = settings.database_url
        if db_url.startswith("duckdb://"):
            return db_url.replace("duckdb://", "", 1)
        return db_url

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        try:
            self._connection.execute(SCHEMA_SQL)
            self._seed_default_protein()
        except duckdb.Error as e:
            raise DatabaseError(f"No se pudo inicializar el esquema: {e}")

    def _seed_default_protein(self):
        """La proteína de respaldo debe existir para que los menús nuevos la referencien"""
        now = self.clock.timestamp()
        self._connection.execute(
            """
            INSERT INTO protein_types (id, name, is_active, created_at, updated_at)
            SELECT ?, ?, TRUE, ?, ?
            WHERE NOT EXISTS (SELECT 1 FROM protein_types WHERE id = ? OR name = ?)
            """,
            [settings.default_protein_type_id, settings.default_protein_name, now, now,
             settings.default_protein_type_id, settings.default_protein_name]
        )

    def init_database(self):
        """Abre la conexión y asegura el esquema"""
        return self.connection

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self, conflict_message: Optional[str] = None) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Transacción todo-o-nada.

        Los errores de la aplicación lanzados dentro del bloque revierten la
        transacción y se propagan sin cambios; las violaciones de unicidad se
        convierten en ConflictError y cualquier otro fallo en DatabaseError.
        """
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN TRANSACTION")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                except duckdb.Error:
                    logger.warning("ROLLBACK falló tras error: %s", e)
                translated = translate_store_error(e, conflict_message)
                if translated is e:
                    raise
                if isinstance(translated, DatabaseError):
                    logger.error("Transacción abortada: %s", e, exc_info=True)
                raise translated from e

    def fetch_one(self, query: str, params: Optional[list] = None, conn=None) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(query, params, conn)
        return rows[0] if rows else None

    def fetch_all(self, query: str, params: Optional[list] = None, conn=None) -> List[Dict[str, Any]]:
        with self._lock:
            con = conn or self.connection
            try:
                return _rows_as_dicts(con.execute(query, params or []))
            except duckdb.Error as e:
                raise translate_store_error(e) from e

    def fetch_value(self, query: str, params: Optional[list] = None, conn=None) -> Any:
        with self._lock:
            con = conn or self.connection
            try:
                row = con.execute(query, params or []).fetchone()
            except duckdb.Error as e:
                raise translate_store_error(e) from e
            return row[0] if row else None

    # ---- claves foráneas ----

    def missing_ids(self, conn, table: str, ids: Iterable[Optional[str]]) -> List[str]:
        wanted = [i for i in dict.fromkeys(ids) if i is not None]
        if not wanted:
            return []
        rows = conn.execute(
            f"SELECT id FROM {table} WHERE id IN ({placeholders(wanted)})", wanted
        ).fetchall()
        found = {r[0] for r in rows}
        return [i for i in wanted if i not in found]

    def ensure_references(self, conn, references: Dict[str, Tuple[str, Iterable[Optional[str]]]]):
        """
        Verifica que cada id referenciado exista.

        references: {etiqueta: (tabla, ids)}; lanza InvalidReferenceError con
        los ids faltantes agrupados por etiqueta.
        """
        missing = {}
        for label, (table, ids) in references.items():
            absent = self.missing_ids(conn, table, ids)
            if absent:
                missing[label] = absent
        if missing:
            raise InvalidReferenceError(
                "Uno o más IDs referenciados no existen",
                details={"missing": missing}
            )

    def ensure_not_referenced(self, conn, usages: Sequence[Tuple[str, str]], value: str, message: str):
        """Lanza ConflictError si alguna fila de (tabla, columna) apunta a value"""
        for table, column in usages:
            hit = conn.execute(
                f"SELECT 1 FROM {table} WHERE {column} = ? LIMIT 1", [value]
            ).fetchone()
            if hit:
                raise ConflictError(message, details={"referenced_by": table})

    # ---- bitácora ----

    def write_log(self, conn, action: str, detail: Dict[str, Any], actor: Optional[str] = None):
        conn.execute(
            "INSERT INTO logs(actor, action, detail_json, created_at) VALUES (?,?,?,?)",
            [actor, action, json.dumps(detail, ensure_ascii=False, default=str), self.clock.timestamp()]
        )

