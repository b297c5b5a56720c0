"""
Combinacion de la vista completa (base) con la vista de alteracion (delta).

Regla por campo:
- delta[f] si existe y no esta vacio
- si no, base[f] si existe y no esta vacio
- si no, el campo se omite (nunca se completa con un valor por defecto)

Los campos de fecha se normalizan a dd/mm/yyyy antes de evaluar si estan vacios.
"""
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind
from odontoprev_sync.shared.utils.datetime_utils import DateTimeUtils


def has_value(value: Any) -> bool:
    """Un valor esta presente si no es None, ni texto en blanco, ni coleccion vacia."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


class FieldMerger:
    """Combina registros campo a campo con precedencia del delta."""

    def __init__(self, date_fields: Iterable[str] = ()) -> None:
        self._date_fields: FrozenSet[str] = frozenset(f.upper() for f in date_fields)

    @property
    def date_fields(self) -> FrozenSet[str]:
        return self._date_fields

    def merge(self, base: Optional[Mapping[str, Any]], delta: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Combina base y delta.

        Raises:
            SyncError(VALIDATION): si un campo de fecha no se puede interpretar
        """
        base = base or {}
        merged: Dict[str, Any] = {}
        for name in _ordered_union(delta, base):
            value = self._normalize(name, delta.get(name))
            if not has_value(value):
                value = self._normalize(name, base.get(name))
            if has_value(value):
                merged[name] = value
        return merged

    def normalize(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Normaliza un registro suelto: fechas canonicas y campos vacios omitidos."""
        return self.merge({}, record)

    def _normalize(self, name: str, value: Any) -> Any:
        if name.upper() not in self._date_fields or not has_value(value):
            return value
        try:
            return DateTimeUtils.normalize_date(value)
        except ValueError as exc:
            raise SyncError(
                SyncErrorKind.VALIDATION,
                f"Campo de fecha {name} invalido: {value!r}",
                details={"field": name, "value": str(value)},
            ) from exc


def _ordered_union(first: Mapping[str, Any], second: Mapping[str, Any]) -> List[str]:
    names = list(first.keys())
    seen = set(names)
    for name in second.keys():
        if name not in seen:
            names.append(name)
            seen.add(name)
    return names
