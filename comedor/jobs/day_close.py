"""
Cierre diario
Una vez al día, a la hora configurada del calendario civil, aplica la
transición masiva configurada sobre las reservas de hoy y deja la etiqueta
correspondiente en el estado del menú.

Se puede ejecutar dentro de la app (DayCloseScheduler, arrancado en el
lifespan) o una sola vez desde cron:

    python -m comedor.jobs.day_close
"""

import argparse
import asyncio
import logging
from datetime import datetime, time, timedelta
from typing import Optional

from ..config.settings import Settings, settings as default_settings
from ..core.clock import Clock
from ..core.database import DatabaseManager
from ..core.exceptions import NotFoundError, ValidationError
from ..core.logger import init_logging
from ..models.reservation import BulkUpdateResult, ReservationStatus
from ..services import Services, build_services

logger = logging.getLogger(__name__)

ACTIONS = ("cancelled", "served")
ACTOR = "day_close"


def run_day_close(services: Services, action: str = "cancelled", target_date=None) -> Optional[BulkUpdateResult]:
    """Ejecuta el cierre; sin menú para la fecha no hace nada y devuelve None"""
    if action not in ACTIONS:
        raise ValidationError(f"Acción de cierre desconocida: {action}", details={"allowed": list(ACTIONS)})

    day = services.clock.to_civil_date(target_date) if target_date else services.clock.today()
    logger.info("Cierre diario date=%s action=%s", day, action)
    try:
        # transición y etiqueta del menú se confirman juntas
        with services.db.transaction() as conn:
            if action == "served":
                result = services.summary.bulk_mark_served(day, ACTOR, conn)
            else:
                result = services.summary.bulk_mark_cancelled(day, ACTOR, conn)
            menu_id = services.menus.find_menu_id_by_date(day, conn)
            services.menus.set_status(conn, menu_id, ReservationStatus(result.status).value)
    except NotFoundError:
        logger.info("Cierre diario sin menú para %s; nada que hacer", day)
        return None

    logger.info("Cierre diario terminado date=%s updated=%d", day, result.updated)
    return result


def parse_run_time(value: str) -> time:
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except ValueError:
        raise ValidationError(f"Hora de cierre inválida: '{value}', se espera HH:MM")


def seconds_until(now: datetime, run_at: time) -> float:
    target = now.replace(hour=run_at.hour, minute=run_at.minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class DayCloseScheduler:
    """Tarea asyncio que duerme hasta la próxima hora de cierre"""

    def __init__(self, services: Services, run_at: str = "22:30", action: str = "cancelled"):
        self.services = services
        self.run_at = parse_run_time(run_at)
        self.action = action
        self._task: Optional[asyncio.Task] = None

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("Cierre diario programado a las %s", self.run_at.strftime("%H:%M"))

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self):
        while True:
            await asyncio.sleep(seconds_until(self.services.clock.now(), self.run_at))
            try:
                await asyncio.to_thread(run_day_close, self.services, self.action)
            except Exception:
                # se registra y se espera al día siguiente
                logger.exception("El cierre diario falló")


def main(argv=None, settings: Settings = default_settings):
    parser = argparse.ArgumentParser(description="Cierre diario de reservas")
    parser.add_argument("--date", help="Fecha a cerrar (YYYY-MM-DD); por defecto hoy")
    parser.add_argument("--action", choices=ACTIONS, default=settings.day_close_action)
    args = parser.parse_args(argv)

    init_logging(settings.log_level)

    clock = Clock(settings.utc_offset_hours)
    db = DatabaseManager(clock=clock)
    try:
        result = run_day_close(build_services(db, clock, settings), args.action, args.date)
    finally:
        db.close()
    if result is None:
        print("Sin menú para la fecha; nada que cerrar")
    else:
        print(f"{result.date}: {result.updated} reservas -> {ReservationStatus(result.status).value}")


if __name__ == "__main__":
    main()
