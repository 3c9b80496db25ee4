"""
Resumen y transiciones masivas
Vista de cocina por fecha (estado global + conteo por proteína) y cierre del
día (servir o cancelar en bloque).
"""

import logging
from typing import Dict, Optional

from ..core.clock import Clock
from ..core.database import DatabaseManager
from ..core.exceptions import NotFoundError
from ..models.reservation import (
    BulkUpdateResult,
    ProteinCount,
    ReservationStatus,
    ReservationSummary,
    SummaryStatus,
)

logger = logging.getLogger(__name__)


def derive_summary_status(statuses) -> SummaryStatus:
    """Prioridad: SERVIDA > RESERVADA/AUTO_ASIGNADA > CANCELADA > SIN_RESERVAS"""
    present = {ReservationStatus(s) for s in statuses}
    if ReservationStatus.SERVIDA in present:
        return SummaryStatus.SERVIDA
    if ReservationStatus.RESERVADA in present or ReservationStatus.AUTO_ASIGNADA in present:
        return SummaryStatus.RESERVADA
    if ReservationStatus.CANCELADA in present:
        return SummaryStatus.CANCELADA
    return SummaryStatus.SIN_RESERVAS


class SummaryService:
    """Agregador de resúmenes y cierres"""

    def __init__(self, db: DatabaseManager, clock: Clock):
        self.db = db
        self.clock = clock

    def summary_by_date(self, value) -> ReservationSummary:
        menu_date = self.clock.to_civil_date(value)
        menu_id = self._menu_id(menu_date)

        rows = self.db.fetch_all(
            """
            SELECT r.protein_type_id, p.name AS protein_name, r.status
            FROM reservations r
            LEFT JOIN protein_types p ON p.id = r.protein_type_id
            WHERE r.menu_id = ?
            ORDER BY r.created_at DESC, r.id DESC
            """, [menu_id]
        )

        counts: Dict[str, ProteinCount] = {}
        for row in rows:
            if row["status"] == ReservationStatus.CANCELADA:
                continue
            count = counts.get(row["protein_type_id"])
            if count is None:
                counts[row["protein_type_id"]] = ProteinCount(
                    protein_type_id=row["protein_type_id"],
                    protein_name=row["protein_name"] or "",
                    count=1,
                )
            else:
                count.count += 1

        # sorted() es estable: a igual conteo se conserva el orden de aparición
        proteins = sorted(counts.values(), key=lambda c: c.count, reverse=True)
        return ReservationSummary(
            date=menu_date,
            status=derive_summary_status(row["status"] for row in rows),
            proteins=proteins,
        )

    def bulk_mark_served(self, value, actor: Optional[str] = None, conn=None) -> BulkUpdateResult:
        """Marca como SERVIDA toda reserva activa; idempotente"""
        return self._bulk_mark(value, ReservationStatus.SERVIDA, "bulk_mark_served", actor, conn)

    def bulk_mark_cancelled(self, value, actor: Optional[str] = None, conn=None) -> BulkUpdateResult:
        """Cancela toda reserva que no esté ya CANCELADA o SERVIDA"""
        return self._bulk_mark(value, ReservationStatus.CANCELADA, "bulk_mark_cancelled", actor, conn)

    def _bulk_mark(self, value, status: ReservationStatus, action: str,
                   actor: Optional[str], conn=None) -> BulkUpdateResult:
        """Con `conn` se ejecuta dentro de la transacción del llamador"""
        if conn is None:
            with self.db.transaction() as own:
                return self._bulk_mark(value, status, action, actor, own)

        menu_date = self.clock.to_civil_date(value)
        menu_id = self._menu_id(menu_date, conn)
        now = self.clock.timestamp()
        served_at = "served_at = ?, " if status == ReservationStatus.SERVIDA else ""
        params = [status.value] + ([now] if served_at else []) + [
            now, menu_id, ReservationStatus.CANCELADA.value, ReservationStatus.SERVIDA.value
        ]
        updated = conn.execute(
            f"""
            UPDATE reservations SET status = ?, {served_at}updated_at = ?
            WHERE menu_id = ? AND status NOT IN (?, ?)
            RETURNING id
            """, params
        ).fetchall()
        self.db.write_log(conn, action, {
            "date": str(menu_date), "menu_id": menu_id, "updated": len(updated)
        }, actor)
        logger.info("BULK %s date=%s updated=%d", status.value, menu_date, len(updated))
        return BulkUpdateResult(date=menu_date, status=status, updated=len(updated))

    def _menu_id(self, menu_date, conn=None) -> str:
        menu_id = self.db.fetch_value("SELECT id FROM menus WHERE date = ?", [menu_date], conn)
        if not menu_id:
            raise NotFoundError("No hay menú para esta fecha")
        return menu_id
