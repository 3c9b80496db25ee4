"""
Motor de reservas
Crea, modifica y cancela reservas contra el menú de una fecha, aplicando la
regla de corte ("mañana o después") y la pertenencia a los conjuntos de
opciones del menú. Dueño de la máquina de estados de la reserva:

    (nueva) -> RESERVADA | AUTO_ASIGNADA
    RESERVADA | AUTO_ASIGNADA -> RESERVADA | AUTO_ASIGNADA   (update, con corte)
    RESERVADA | AUTO_ASIGNADA -> CANCELADA                   (cancel, con corte)
    SERVIDA y CANCELADA son terminales
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from ..config.settings import Settings, settings as default_settings
from ..core.clock import Clock
from ..core.database import DatabaseManager, placeholders
from ..core.exceptions import ForbiddenError, NotFoundError, ValidationError
from ..models.base import DeleteResult, NamedRef
from ..models.reservation import (
    Reservation,
    ReservationMenuRef,
    ReservationStatus,
    SideDishSnapshot,
    TERMINAL_STATUSES,
)
from .whitelist_service import WhitelistService

logger = logging.getLogger(__name__)

RESERVATION_QUERY = """
SELECT
    r.id, r.menu_id, r.whitelist_entry_id, r.cc, r.name, r.protein_type_id,
    p.name AS protein_name, r.status, r.served_at, r.created_at, r.updated_at,
    m.date AS menu_date, m.day_of_week AS menu_day_of_week
FROM reservations r
JOIN menus m ON m.id = r.menu_id
LEFT JOIN protein_types p ON p.id = r.protein_type_id
"""

DUPLICATE_RESERVATION_MESSAGE = "Ya existe una reserva para este menú y cédula"


class ReservationService:
    """Motor de reservas"""

    def __init__(self, db: DatabaseManager, clock: Clock, whitelist: WhitelistService,
                 settings: Settings = default_settings):
        self.db = db
        self.clock = clock
        self.whitelist = whitelist
        self.page_size_max = settings.page_size_max

    # ---- creación ----

    def create(self, cc: str, menu_id: str, protein_type_id: str, actor: Optional[str] = None) -> Reservation:
        """
        Crear reserva.

        Para fechas de mañana en adelante la proteína debe estar en las opciones
        del menú (RESERVADA). Para hoy o fechas pasadas no se rechaza: se asigna
        la proteína por defecto del menú (AUTO_ASIGNADA). Los acompañamientos
        siempre se copian de las opciones del menú.
        """
        cc = (cc or "").strip()
        if not cc:
            raise ValidationError("La cédula es obligatoria")
        logger.info("CREATE reservation cc=%s menu=%s", cc, menu_id)

        reservation_id = str(uuid.uuid4())
        now = self.clock.timestamp()
        with self.db.transaction(conflict_message=DUPLICATE_RESERVATION_MESSAGE) as conn:
            user = self.whitelist.find_by_cc(cc, conn)
            if not user:
                raise NotFoundError("Cédula no encontrada en la lista blanca")
            if not user["enabled"]:
                raise ForbiddenError("El empleado está deshabilitado en la lista blanca")

            menu = self._menu_context(conn, menu_id)
            if menu is None:
                raise NotFoundError("Menú no encontrado")

            if self.clock.is_tomorrow_or_later(menu["date"]):
                if protein_type_id not in menu["protein_option_ids"]:
                    raise ValidationError("La proteína seleccionada no está disponible en este menú")
                status = ReservationStatus.RESERVADA
            else:
                if not menu["default_protein_type_id"]:
                    raise ValidationError(
                        "El menú no tiene proteína por defecto y las reservas del mismo día no pueden elegir"
                    )
                protein_type_id = menu["default_protein_type_id"]
                status = ReservationStatus.AUTO_ASIGNADA

            conn.execute(
                """
                INSERT INTO reservations(id, menu_id, whitelist_entry_id, cc, name, protein_type_id,
                                         status, served_at, created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,NULL,?,?)
                """,
                [reservation_id, menu_id, user["id"], user["cc"], user["name"], protein_type_id,
                 status.value, now, now]
            )
            self._insert_side_dishes(conn, reservation_id, menu["side_options"])
            self.db.write_log(conn, "create_reservation", {
                "reservation_id": reservation_id,
                "menu_id": menu_id,
                "cc": cc,
                "status": status.value,
            }, actor or cc)

        logger.info("CREATE reservation success id=%s status=%s", reservation_id, status.value)
        return self.find_one(reservation_id)

    # ---- modificación ----

    def update(self, reservation_id: str, cc: str, protein_type_id: str,
               side_dish_ids: Optional[List[str]] = None, actor: Optional[str] = None) -> Reservation:
        """Cambiar proteína y, si se envían, reemplazar los acompañamientos"""
        with self.db.transaction() as conn:
            reservation, menu = self._owned_and_open(conn, reservation_id, cc, "modificar")

            if protein_type_id not in menu["protein_option_ids"]:
                raise ValidationError("La proteína seleccionada no está disponible en este menú")

            sides = None
            if side_dish_ids is not None:
                allowed = {side["side_dish_id"]: side["name"] for side in menu["side_options"]}
                sides = []
                for side_dish_id in dict.fromkeys(side_dish_ids):
                    if side_dish_id not in allowed:
                        raise ValidationError(
                            f"El acompañamiento {side_dish_id} no está disponible en este menú",
                            details={"side_dish_id": side_dish_id}
                        )
                    sides.append({"side_dish_id": side_dish_id, "name": allowed[side_dish_id]})

            self._write_open(
                conn, reservation_id, "modificar",
                "protein_type_id = ?, updated_at = ?", [protein_type_id, self.clock.timestamp()]
            )
            if sides is not None:
                conn.execute(
                    "DELETE FROM reservation_side_dishes WHERE reservation_id = ?", [reservation_id]
                )
                self._insert_side_dishes(conn, reservation_id, sides)
            self.db.write_log(conn, "update_reservation", {
                "reservation_id": reservation_id,
                "protein_type_id": protein_type_id,
                "side_dish_ids": None if sides is None else [s["side_dish_id"] for s in sides],
            }, actor or reservation["cc"])

        logger.info("UPDATE reservation id=%s", reservation_id)
        return self.find_one(reservation_id)

    def cancel(self, reservation_id: str, cc: str, actor: Optional[str] = None) -> Reservation:
        with self.db.transaction() as conn:
            reservation, _ = self._owned_and_open(conn, reservation_id, cc, "cancelar")
            self._write_open(
                conn, reservation_id, "cancelar",
                "status = ?, updated_at = ?", [ReservationStatus.CANCELADA.value, self.clock.timestamp()]
            )
            self.db.write_log(conn, "cancel_reservation", {"reservation_id": reservation_id},
                              actor or reservation["cc"])
        logger.info("CANCEL reservation id=%s", reservation_id)
        return self.find_one(reservation_id)

    def delete(self, reservation_id: str, actor: Optional[str] = None) -> DeleteResult:
        """Borrado administrativo, sin corte ni verificación de dueño"""
        with self.db.transaction() as conn:
            if not self.db.fetch_value("SELECT 1 FROM reservations WHERE id = ?", [reservation_id], conn):
                raise NotFoundError("Reserva no encontrada")
            conn.execute("DELETE FROM reservation_side_dishes WHERE reservation_id = ?", [reservation_id])
            conn.execute("DELETE FROM reservations WHERE id = ?", [reservation_id])
            self.db.write_log(conn, "delete_reservation", {"reservation_id": reservation_id}, actor)
        logger.info("DELETE reservation id=%s", reservation_id)
        return DeleteResult(id=reservation_id)

    # ---- lectura ----

    def find_one(self, reservation_id: str) -> Reservation:
        reservations = self._load_reservations("WHERE r.id = ?", [reservation_id])
        if not reservations:
            raise NotFoundError("Reserva no encontrada")
        return reservations[0]

    def find_all(self, skip: int = 0, take: int = 50, date=None) -> List[Reservation]:
        if take > self.page_size_max:
            raise ValidationError(f"take máximo es {self.page_size_max}")
        clause, params = "", []
        if date:
            clause, params = "WHERE m.date = ?", [self.clock.to_civil_date(date)]
        return self._load_reservations(
            f"{clause} ORDER BY r.created_at DESC, r.id DESC LIMIT ? OFFSET ?", params + [take, skip]
        )

    def find_by_cc(self, cc: str, date=None) -> List[Reservation]:
        clause, params = "WHERE r.cc = ?", [(cc or "").strip()]
        if date:
            clause += " AND m.date = ?"
            params.append(self.clock.to_civil_date(date))
        return self._load_reservations(f"{clause} ORDER BY r.created_at DESC, r.id DESC", params)

    def find_by_menu_id(self, menu_id: str) -> List[Reservation]:
        if not self.db.fetch_value("SELECT 1 FROM menus WHERE id = ?", [menu_id]):
            raise NotFoundError("Menú no encontrado")
        return self._load_reservations(
            "WHERE r.menu_id = ? ORDER BY r.created_at DESC, r.id DESC", [menu_id]
        )

    # ---- auxiliares ----

    def _owned_and_open(self, conn, reservation_id: str, cc: str, verb: str):
        """Existe, pertenece a la cédula, la fecha sigue abierta y no está en estado terminal"""
        cc = (cc or "").strip()
        reservation = self.db.fetch_one(
            "SELECT id, menu_id, cc, status FROM reservations WHERE id = ?", [reservation_id], conn
        )
        if not reservation:
            raise NotFoundError("Reserva no encontrada")
        if reservation["cc"] != cc:
            raise ForbiddenError("Esta reserva no pertenece a la cédula indicada")

        menu = self._menu_context(conn, reservation["menu_id"])
        if menu is None or not self.clock.is_tomorrow_or_later(menu["date"]):
            raise ValidationError(
                f"No se puede {verb} una reserva de hoy o de una fecha pasada; "
                "solo se permiten cambios desde mañana en adelante"
            )
        if reservation["status"] in TERMINAL_STATUSES:
            raise ValidationError(f"No se puede {verb} una reserva en estado {reservation['status']}")
        return reservation, menu

    def _write_open(self, conn, reservation_id: str, verb: str, assignments: str, params: list):
        """UPDATE que solo aplica sobre una reserva aún no terminal"""
        terminal = [status.value for status in TERMINAL_STATUSES]
        updated = conn.execute(
            f"UPDATE reservations SET {assignments} "
            f"WHERE id = ? AND status NOT IN ({placeholders(terminal)}) RETURNING id",
            params + [reservation_id] + terminal
        ).fetchall()
        if not updated:
            raise ValidationError(f"No se puede {verb} una reserva servida o cancelada")

    def _menu_context(self, conn, menu_id: str) -> Optional[Dict[str, Any]]:
        menu = self.db.fetch_one(
            "SELECT id, date, default_protein_type_id FROM menus WHERE id = ?", [menu_id], conn
        )
        if menu is None:
            return None
        menu["protein_option_ids"] = [
            row["protein_type_id"] for row in self.db.fetch_all(
                "SELECT protein_type_id FROM menu_protein_options WHERE menu_id = ?", [menu_id], conn
            )
        ]
        menu["side_options"] = self.db.fetch_all(
            """
            SELECT o.side_dish_id, sd.name
            FROM menu_side_options o
            JOIN side_dishes sd ON sd.id = o.side_dish_id
            WHERE o.menu_id = ?
            ORDER BY sd.name
            """, [menu_id], conn
        )
        return menu

    def _insert_side_dishes(self, conn, reservation_id: str, sides: List[Dict[str, Any]]):
        for side in sides:
            conn.execute(
                "INSERT INTO reservation_side_dishes(id, reservation_id, side_dish_id, name_snapshot) VALUES (?,?,?,?)",
                [str(uuid.uuid4()), reservation_id, side["side_dish_id"], side["name"]]
            )

    def _load_reservations(self, clause: str, params: list) -> List[Reservation]:
        rows = self.db.fetch_all(f"{RESERVATION_QUERY} {clause}", params)
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        snapshots: Dict[str, List[SideDishSnapshot]] = {}
        for side in self.db.fetch_all(
            f"""
            SELECT id, reservation_id, side_dish_id, name_snapshot
            FROM reservation_side_dishes
            WHERE reservation_id IN ({placeholders(ids)})
            ORDER BY name_snapshot
            """, ids
        ):
            snapshots.setdefault(side["reservation_id"], []).append(SideDishSnapshot(
                id=side["id"], side_dish_id=side["side_dish_id"], name_snapshot=side["name_snapshot"]
            ))

        return [
            Reservation(
                id=row["id"],
                menu_id=row["menu_id"],
                whitelist_entry_id=row["whitelist_entry_id"],
                cc=row["cc"],
                name=row["name"],
                protein_type_id=row["protein_type_id"],
                protein_type=(NamedRef(id=row["protein_type_id"], name=row["protein_name"])
                              if row["protein_name"] is not None else None),
                status=row["status"],
                served_at=row["served_at"],
                side_dishes=snapshots.get(row["id"], []),
                menu=ReservationMenuRef(id=row["menu_id"], date=row["menu_date"],
                                        day_of_week=row["menu_day_of_week"]),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]
