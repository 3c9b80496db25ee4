"""
Servicio de menús
Un menú por fecha civil, con su proteína por defecto y dos conjuntos de
opciones (proteínas y acompañamientos permitidos).
"""

import logging
import uuid
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ..config.settings import Settings, settings as default_settings
from ..core.clock import Clock, day_of_week
from ..core.database import DatabaseManager, placeholders
from ..core.exceptions import ConflictError, InvalidReferenceError, NotFoundError, ValidationError
from ..models.base import DeleteResult, NamedRef
from ..models.menu import Menu, ProteinOption, SideOption, UserMenu
from ..schemas.menu import MenuCreateRequest, MenuUpdateRequest

logger = logging.getLogger(__name__)

MENU_QUERY = """
SELECT
    m.id, m.date, m.day_of_week, m.status, m.created_at, m.updated_at,
    m.soup_id, s.name AS soup_name,
    m.drink_id, d.name AS drink_name,
    m.default_protein_type_id, p.name AS default_protein_name
FROM menus m
LEFT JOIN soups s ON s.id = m.soup_id
LEFT JOIN drinks d ON d.id = m.drink_id
LEFT JOIN protein_types p ON p.id = m.default_protein_type_id
"""

DUPLICATE_DATE_MESSAGE = "Ya existe un menú para esta fecha"

# conjunto de opciones -> (tabla, columna, tabla de catálogo)
OPTION_SETS = {
    "protein_option_ids": ("menu_protein_options", "protein_type_id", "protein_types"),
    "side_option_ids": ("menu_side_options", "side_dish_id", "side_dishes"),
}


def _ref(ref_id: Optional[str], name: Optional[str]) -> Optional[NamedRef]:
    if ref_id is None or name is None:
        return None
    return NamedRef(id=ref_id, name=name)


def _ensure_unique_options(field: str, ids: Iterable[str]):
    seen, duplicates = set(), []
    for item in ids:
        if item in seen and item not in duplicates:
            duplicates.append(item)
        seen.add(item)
    if duplicates:
        raise ConflictError(
            "Opción de proteína o acompañamiento duplicada",
            details={field: duplicates}
        )


class MenuService:
    """Programador de menús"""

    def __init__(self, db: DatabaseManager, clock: Clock, settings: Settings = default_settings):
        self.db = db
        self.clock = clock
        self.default_protein_type_id = settings.default_protein_type_id
        self.page_size_max = settings.page_size_max

    # ---- escritura ----

    def create(self, data: MenuCreateRequest, actor: Optional[str] = None) -> Menu:
        """Crear menú"""
        logger.info("CREATE menu date=%s", data.date)
        if self.clock.is_past(data.date):
            raise ValidationError("No se puede crear un menú para una fecha pasada")

        fields = {
            "soup_id": data.soup_id,
            "drink_id": data.drink_id,
            "default_protein_type_id": data.default_protein_type_id or self.default_protein_type_id,
        }
        options = {
            "protein_option_ids": data.protein_option_ids or [],
            "side_option_ids": data.side_option_ids or [],
        }
        menu_id = self._insert_menu(data.date, fields, options, "create_menu", actor)
        logger.info("CREATE menu success date=%s id=%s", data.date, menu_id)
        return self.find_one(menu_id)

    def clone(self, source_id: str, target_date: date, actor: Optional[str] = None) -> Menu:
        """Copia sopa, bebida, proteína por defecto y opciones a una nueva fecha"""
        logger.info("CLONE menu source=%s target=%s", source_id, target_date)
        source = self.find_one(source_id)
        if self.clock.is_past(target_date):
            raise ValidationError("No se puede clonar un menú a una fecha pasada")

        fields = {
            "soup_id": source.soup_id,
            "drink_id": source.drink_id,
            "default_protein_type_id": source.default_protein_type_id,
        }
        options = {
            "protein_option_ids": source.protein_option_ids,
            "side_option_ids": source.side_option_ids,
        }
        menu_id = self._insert_menu(
            target_date, fields, options, "clone_menu", actor, extra={"source_id": source_id}
        )
        logger.info("CLONE success source=%s target=%s", source_id, target_date)
        return self.find_one(menu_id)

    def update(self, menu_id: str, data: MenuUpdateRequest, actor: Optional[str] = None) -> Menu:
        """
        Actualización parcial.

        Los escalares presentes se reemplazan uno a uno; un conjunto de opciones
        presente (aunque sea vacío) reemplaza al anterior completo. Todo ocurre en
        una sola transacción, así que ningún lector ve un conjunto a medias.
        """
        logger.info("UPDATE menu id=%s", menu_id)

        present = data.model_fields_set
        scalars = {
            field: getattr(data, field)
            for field in ("soup_id", "drink_id", "default_protein_type_id")
            if field in present
        }
        replacements = {
            field: list(getattr(data, field))
            for field in OPTION_SETS
            if field in present
        }
        for field, ids in replacements.items():
            _ensure_unique_options(field, ids)

        with self.db.transaction(conflict_message="Opción de proteína o acompañamiento duplicada") as conn:
            self._require_menu(conn, menu_id)
            self._check_references(conn, scalars, replacements)
            if scalars:
                assignments = ", ".join(f"{column} = ?" for column in scalars)
                conn.execute(
                    f"UPDATE menus SET {assignments}, updated_at = ? WHERE id = ?",
                    list(scalars.values()) + [self.clock.timestamp(), menu_id]
                )
            for field, ids in replacements.items():
                self._replace_option_set(conn, menu_id, field, ids)
            if not scalars and replacements:
                conn.execute(
                    "UPDATE menus SET updated_at = ? WHERE id = ?",
                    [self.clock.timestamp(), menu_id]
                )
            self.db.write_log(conn, "update_menu", {
                "menu_id": menu_id,
                "fields": sorted(scalars),
                "replaced_sets": sorted(replacements),
            }, actor)

        return self.find_one(menu_id)

    def update_status(self, menu_id: str, status: str, actor: Optional[str] = None) -> Menu:
        """Cambio administrativo de la etiqueta de estado"""
        with self.db.transaction() as conn:
            self._require_menu(conn, menu_id)
            self.set_status(conn, menu_id, status)
            self.db.write_log(conn, "update_menu_status", {"menu_id": menu_id, "status": status}, actor)
        logger.info("STATUS menu id=%s status=%s", menu_id, status)
        return self.find_one(menu_id)

    def delete(self, menu_id: str, actor: Optional[str] = None) -> DeleteResult:
        """Eliminar menú; se rechaza si tiene reservas"""
        logger.info("DELETE menu id=%s", menu_id)
        with self.db.transaction() as conn:
            self._require_menu(conn, menu_id)
            try:
                self.db.ensure_not_referenced(
                    conn, (("reservations", "menu_id"),), menu_id,
                    "No se puede eliminar un menú con reservas"
                )
            except ConflictError:
                logger.warning("DELETE rejected id=%s has reservations", menu_id)
                raise
            for table, _, _ in OPTION_SETS.values():
                conn.execute(f"DELETE FROM {table} WHERE menu_id = ?", [menu_id])
            conn.execute("DELETE FROM menus WHERE id = ?", [menu_id])
            self.db.write_log(conn, "delete_menu", {"menu_id": menu_id}, actor)
        logger.info("DELETE menu success id=%s", menu_id)
        return DeleteResult(id=menu_id)

    # ---- lectura ----

    def find_one(self, menu_id: str) -> Menu:
        menus = self._load_menus("WHERE m.id = ?", [menu_id])
        if not menus:
            raise NotFoundError("Menú no encontrado")
        return menus[0]

    def find_all(self, skip: int = 0, take: int = 50) -> List[Menu]:
        if take > self.page_size_max:
            raise ValidationError(f"take máximo es {self.page_size_max}")
        return self._load_menus("ORDER BY m.date DESC LIMIT ? OFFSET ?", [take, skip])

    def find_by_date(self, value) -> Menu:
        menu_date = self.clock.to_civil_date(value)
        menus = self._load_menus("WHERE m.date = ?", [menu_date])
        if not menus:
            raise NotFoundError("No hay menú para esta fecha")
        return menus[0]

    def find_by_date_for_user(self, value, cc: Optional[str] = None) -> UserMenu:
        """Menú de la fecha con la marca de reserva del empleado"""
        menu = self.find_by_date(value)
        user_menu = UserMenu(**menu.model_dump())
        cc = (cc or "").strip()
        if cc:
            reservation_id = self.db.fetch_value(
                "SELECT id FROM reservations WHERE menu_id = ? AND cc = ?", [menu.id, cc]
            )
            user_menu.has_reservation = reservation_id is not None
            user_menu.reservation_id = reservation_id
        return user_menu

    def find_menu_id_by_date(self, menu_date: date, conn=None) -> Optional[str]:
        return self.db.fetch_value("SELECT id FROM menus WHERE date = ?", [menu_date], conn)

    # ---- auxiliares ----

    def _require_menu(self, conn, menu_id: str):
        if not self.db.fetch_value("SELECT 1 FROM menus WHERE id = ?", [menu_id], conn):
            raise NotFoundError("Menú no encontrado")

    def set_status(self, conn, menu_id: str, status: str):
        conn.execute(
            "UPDATE menus SET status = ?, updated_at = ? WHERE id = ?",
            [status, self.clock.timestamp(), menu_id]
        )

    def _insert_menu(self, menu_date: date, fields: Dict[str, Optional[str]],
                     options: Dict[str, List[str]], action: str, actor: Optional[str],
                     extra: Optional[Dict[str, Any]] = None) -> str:
        for field, ids in options.items():
            _ensure_unique_options(field, ids)

        menu_id = str(uuid.uuid4())
        now = self.clock.timestamp()
        with self.db.transaction(conflict_message=DUPLICATE_DATE_MESSAGE) as conn:
            if conn.execute("SELECT 1 FROM menus WHERE date = ?", [menu_date]).fetchone():
                logger.warning("%s conflict date=%s already exists", action, menu_date)
                raise ConflictError(DUPLICATE_DATE_MESSAGE, details={"date": str(menu_date)})
            self._check_references(conn, fields, options)
            conn.execute(
                """
                INSERT INTO menus(id, date, day_of_week, soup_id, drink_id, default_protein_type_id,
                                  status, created_at, updated_at)
                VALUES (?,?,?,?,?,?,NULL,?,?)
                """,
                [menu_id, menu_date, day_of_week(menu_date), fields["soup_id"], fields["drink_id"],
                 fields["default_protein_type_id"], now, now]
            )
            for field, ids in options.items():
                self._insert_options(conn, menu_id, field, ids)
            detail = {"menu_id": menu_id, "date": str(menu_date)}
            detail.update(extra or {})
            self.db.write_log(conn, action, detail, actor)
        return menu_id

    def _check_references(self, conn, scalars: Dict[str, Optional[str]], options: Dict[str, List[str]]):
        references = {}
        for field, table in (("soup_id", "soups"), ("drink_id", "drinks"),
                             ("default_protein_type_id", "protein_types")):
            if scalars.get(field) is not None:
                references[field] = (table, [scalars[field]])
        for field, ids in options.items():
            references[field] = (OPTION_SETS[field][2], ids)
        try:
            self.db.ensure_references(conn, references)
        except InvalidReferenceError:
            logger.warning("Referencias inválidas en menú: %s", sorted(references))
            raise

    def _insert_options(self, conn, menu_id: str, field: str, ids: Iterable[str]):
        table, column, _ = OPTION_SETS[field]
        for item in ids:
            conn.execute(
                f"INSERT INTO {table}(id, menu_id, {column}) VALUES (?,?,?)",
                [str(uuid.uuid4()), menu_id, item]
            )

    def _replace_option_set(self, conn, menu_id: str, field: str, ids: List[str]):
        """
        Reemplazo del conjunto completo.

        Se borran las filas que ya no están y se insertan las nuevas; las que se
        mantienen no se tocan, lo que evita reinsertar una clave única recién borrada
        dentro de la misma transacción.
        """
        table, column, _ = OPTION_SETS[field]
        current = {
            row[0] for row in conn.execute(
                f"SELECT {column} FROM {table} WHERE menu_id = ?", [menu_id]
            ).fetchall()
        }
        wanted = list(dict.fromkeys(ids))
        removed = [item for item in current if item not in set(wanted)]
        added = [item for item in wanted if item not in current]
        if removed:
            conn.execute(
                f"DELETE FROM {table} WHERE menu_id = ? AND {column} IN ({placeholders(removed)})",
                [menu_id] + removed
            )
        self._insert_options(conn, menu_id, field, added)

    def _load_menus(self, clause: str, params: list) -> List[Menu]:
        rows = self.db.fetch_all(f"{MENU_QUERY} {clause}", params)
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        proteins = self.db.fetch_all(
            f"""
            SELECT o.id, o.menu_id, o.protein_type_id, p.name
            FROM menu_protein_options o
            LEFT JOIN protein_types p ON p.id = o.protein_type_id
            WHERE o.menu_id IN ({placeholders(ids)})
            ORDER BY p.name
            """, ids
        )
        sides = self.db.fetch_all(
            f"""
            SELECT o.id, o.menu_id, o.side_dish_id, sd.name
            FROM menu_side_options o
            LEFT JOIN side_dishes sd ON sd.id = o.side_dish_id
            WHERE o.menu_id IN ({placeholders(ids)})
            ORDER BY sd.name
            """, ids
        )

        menus = []
        for row in rows:
            menus.append(Menu(
                id=row["id"],
                date=row["date"],
                day_of_week=row["day_of_week"],
                status=row["status"],
                soup_id=row["soup_id"],
                soup=_ref(row["soup_id"], row["soup_name"]),
                drink_id=row["drink_id"],
                drink=_ref(row["drink_id"], row["drink_name"]),
                default_protein_type_id=row["default_protein_type_id"],
                default_protein_type=_ref(row["default_protein_type_id"], row["default_protein_name"]),
                protein_options=[
                    ProteinOption(id=o["id"], protein_type_id=o["protein_type_id"],
                                  protein_type=_ref(o["protein_type_id"], o["name"]))
                    for o in proteins if o["menu_id"] == row["id"]
                ],
                side_options=[
                    SideOption(id=o["id"], side_dish_id=o["side_dish_id"],
                               side_dish=_ref(o["side_dish_id"], o["name"]))
                    for o in sides if o["menu_id"] == row["id"]
                ],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            ))
        return menus
