"""
Utilidades para manejo de fechas y horas.
"""
from datetime import date, datetime, timezone
from typing import Any, Optional

from odontoprev_sync.shared.constants.sync_constants import (
    ACCEPTED_DATE_FORMATS,
    CANONICAL_DATE_FORMAT,
)


class DateTimeUtils:
    """Clase de utilidades para operaciones con fechas y horas."""

    @staticmethod
    def now_utc() -> datetime:
        """
        Obtiene la fecha y hora actual en UTC.

        Returns:
            datetime: Fecha y hora actual en UTC
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """Normaliza un datetime a UTC (aware). Los naive se asumen UTC."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def parse_erp_date(value: Any) -> Optional[date]:
        """
        Interpreta una fecha tal como la entregan las vistas del ERP.

        Acepta objetos date/datetime, strings en los formatos de
        ACCEPTED_DATE_FORMATS y datetimes ISO ("2024-01-15T10:30:00").

        Returns:
            Optional[date]: la fecha, o None si el valor esta vacio

        Raises:
            ValueError: si el valor no vacio no se puede interpretar
        """
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        text = str(value).strip()
        if not text:
            return None

        for fmt in ACCEPTED_DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            raise ValueError(f"Fecha con formato no soportado: {text!r}") from None

    @classmethod
    def normalize_date(cls, value: Any) -> Optional[str]:
        """
        Convierte una fecha del ERP al formato canonico dd/mm/yyyy.

        Returns:
            Optional[str]: fecha normalizada o None si el valor esta vacio
        """
        parsed = cls.parse_erp_date(value)
        if parsed is None:
            return None
        return parsed.strftime(CANONICAL_DATE_FORMAT)
