"""
Servicio de catálogos de referencia
Proteínas, acompañamientos, sopas y bebidas comparten el mismo comportamiento:
nombre único, borrado lógico por is_active y borrado físico solo si nadie los referencia.
"""

import logging
import uuid
from typing import List, Optional, Sequence, Tuple

from ..core.clock import Clock
from ..core.database import DatabaseManager
from ..core.exceptions import NotFoundError, ValidationError
from ..models.base import DeleteResult
from ..models.catalog import CatalogItem

logger = logging.getLogger(__name__)

SELECT_FIELDS = "id, name, is_active, created_at, updated_at"


class CatalogService:
    """Servicio genérico de un catálogo"""

    def __init__(self, db: DatabaseManager, clock: Clock, table: str, label: str,
                 usages: Sequence[Tuple[str, str]], page_size_max: int = 200):
        self.db = db
        self.clock = clock
        self.table = table
        self.label = label
        self.usages = usages
        self.page_size_max = page_size_max

    def create(self, name: str, is_active: Optional[bool] = True) -> CatalogItem:
        name = self._clean_name(name)
        now = self.clock.timestamp()
        item_id = str(uuid.uuid4())
        with self.db.transaction(conflict_message=f"Ya existe un(a) {self.label} con ese nombre") as conn:
            conn.execute(
                f"INSERT INTO {self.table}(id, name, is_active, created_at, updated_at) VALUES (?,?,?,?,?)",
                [item_id, name, True if is_active is None else is_active, now, now]
            )
        logger.info("CREATE %s id=%s name=%s", self.table, item_id, name)
        return self.find_one(item_id)

    def find_all(self, q: Optional[str] = None, active: Optional[bool] = None,
                 skip: int = 0, take: int = 50) -> List[CatalogItem]:
        if take > self.page_size_max:
            raise ValidationError(f"take máximo es {self.page_size_max}")
        clauses, params = [], []
        if active is not None:
            clauses.append("is_active = ?")
            params.append(active)
        if q and q.strip():
            clauses.append("name ILIKE ?")
            params.append(f"%{q.strip()}%")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.fetch_all(
            f"SELECT {SELECT_FIELDS} FROM {self.table} {where} ORDER BY name ASC LIMIT ? OFFSET ?",
            params + [take, skip]
        )
        return [CatalogItem(**row) for row in rows]

    def find_one(self, item_id: str) -> CatalogItem:
        row = self.db.fetch_one(f"SELECT {SELECT_FIELDS} FROM {self.table} WHERE id = ?", [item_id])
        if not row:
            raise NotFoundError(f"{self.label.capitalize()} no encontrado(a)")
        return CatalogItem(**row)

    def rename(self, item_id: str, name: str) -> CatalogItem:
        name = self._clean_name(name)
        self.find_one(item_id)
        with self.db.transaction(conflict_message=f"Ya existe un(a) {self.label} con ese nombre") as conn:
            conn.execute(
                f"UPDATE {self.table} SET name = ?, updated_at = ? WHERE id = ?",
                [name, self.clock.timestamp(), item_id]
            )
        return self.find_one(item_id)

    def deactivate(self, item_id: str) -> CatalogItem:
        self.find_one(item_id)
        with self.db.transaction() as conn:
            conn.execute(
                f"UPDATE {self.table} SET is_active = FALSE, updated_at = ? WHERE id = ?",
                [self.clock.timestamp(), item_id]
            )
        logger.info("DEACTIVATE %s id=%s", self.table, item_id)
        return self.find_one(item_id)

    def delete(self, item_id: str) -> DeleteResult:
        self.find_one(item_id)
        with self.db.transaction() as conn:
            self.db.ensure_not_referenced(
                conn, self.usages, item_id,
                f"No se puede eliminar: el/la {self.label} está referenciado(a) por menús o reservas. Desactívelo(a) en su lugar."
            )
            # las instantáneas de reservas conservan el nombre aunque se borre el catálogo
            if self.table == "side_dishes":
                conn.execute(
                    "UPDATE reservation_side_dishes SET side_dish_id = NULL WHERE side_dish_id = ?",
                    [item_id]
                )
            conn.execute(f"DELETE FROM {self.table} WHERE id = ?", [item_id])
        logger.info("DELETE %s id=%s", self.table, item_id)
        return DeleteResult(id=item_id)

    def _clean_name(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("El nombre es obligatorio")
        return name


# tabla -> (etiqueta, usos que bloquean el borrado físico)
CATALOGS = {
    "protein_types": ("proteína", (
        ("menus", "default_protein_type_id"),
        ("menu_protein_options", "protein_type_id"),
        ("reservations", "protein_type_id"),
    )),
    "side_dishes": ("acompañamiento", (
        ("menu_side_options", "side_dish_id"),
    )),
    "soups": ("sopa", (
        ("menus", "soup_id"),
    )),
    "drinks": ("bebida", (
        ("menus", "drink_id"),
    )),
}


def build_catalog_services(db: DatabaseManager, clock: Clock, page_size_max: int = 200):
    return {
        table: CatalogService(db, clock, table, label, usages, page_size_max)
        for table, (label, usages) in CATALOGS.items()
    }
