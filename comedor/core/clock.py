"""
Reloj y reglas de fecha civil

Todas las decisiones de corte usan un calendario civil con desfase fijo
(UTC-5 por defecto, Colombia no aplica horario de verano), sin depender de la
zona horaria del host. Las fechas se comparan como fechas de calendario.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Union

from .exceptions import ValidationError

# Índice 0 = domingo (isoweekday() % 7)
DAY_OF_WEEK = ("DOM", "LUN", "MAR", "MIE", "JUE", "VIE", "SAB")

DateLike = Union[date, datetime, str]

DEFAULT_TZ = timezone(timedelta(hours=-5))


class Clock:
    """Reloj del sistema con desfase UTC fijo"""

    def __init__(self, utc_offset_hours: int = -5):
        self.tz = timezone(timedelta(hours=utc_offset_hours))

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def timestamp(self) -> datetime:
        """Hora local civil sin tzinfo, tal como se guarda en created_at/updated_at"""
        return self.now().replace(tzinfo=None)

    def to_civil_date(self, value: DateLike) -> date:
        return parse_civil_date(value, self.tz)

    def is_past(self, value: DateLike) -> bool:
        return self.to_civil_date(value) < self.today()

    def is_tomorrow_or_later(self, value: DateLike) -> bool:
        return self.to_civil_date(value) > self.today()


class FixedClock(Clock):
    """Reloj detenido en un instante dado; se usa en pruebas y tareas manuales"""

    def __init__(self, current: Union[datetime, date], utc_offset_hours: int = -5):
        super().__init__(utc_offset_hours)
        self.set(current)

    def set(self, current: Union[datetime, date]):
        if not isinstance(current, datetime):
            current = datetime(current.year, current.month, current.day, 12, 0)
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        self._current = current.astimezone(self.tz)

    def advance(self, **delta) -> datetime:
        self._current = self._current + timedelta(**delta)
        return self._current

    def now(self) -> datetime:
        return self._current


def parse_civil_date(value: DateLike, tz: timezone = DEFAULT_TZ) -> date:
    """
    Normaliza a una fecha civil.

    'YYYY-MM-DD' se toma tal cual; un ISO datetime con desfase se lleva primero
    al calendario civil de `tz`. Cualquier otro texto es ValidationError.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            f"Fecha inválida: '{value}', se espera el formato YYYY-MM-DD",
            details={"value": str(value)}
        )
    return parse_civil_date(parsed, tz)


def day_of_week(value: date) -> str:
    return DAY_OF_WEEK[value.isoweekday() % 7]
