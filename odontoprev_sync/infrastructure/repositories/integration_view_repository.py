"""
Lectura de las vistas de integracion del ERP (solo lectura).

Las vistas no se mapean como entidades ORM: se consultan con SQLAlchemy
Core (`table()` / `column()`) y cada fila se devuelve como un SourceRecord
inmutable. El orden es siempre ascendente por la columna clave, y
LIMIT/OFFSET se compilan segun el dialecto.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from loguru import logger
from sqlalchemy import column, distinct, func, literal_column, select, table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from odontoprev_sync.domain.entities import SourceRecord
from odontoprev_sync.domain.entities.source_definition import SourceDefinition
from odontoprev_sync.infrastructure.erp.view_definitions import get_base_definition, get_view_definition
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind
from odontoprev_sync.shared.utils.monitoring import with_timing


def _normalize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Nombres de columna en mayusculas (los drivers difieren en el case)."""
    return {str(name).upper(): value for name, value in row.items()}


def _key_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class IntegrationViewRepository:
    """Implementacion de SourcePort para una entidad."""

    def __init__(self, engine: Engine, entity_kind: EntityKind, *, schema: Optional[str] = None):
        """
        Args:
            engine: engine con acceso a las vistas del ERP
            entity_kind: entidad cuyas vistas se leen
            schema: esquema de las vistas (None = esquema por defecto de la conexion)
        """
        self._engine = engine
        self._entity_kind = entity_kind
        self._schema = schema or None

    @property
    def entity_kind(self) -> EntityKind:
        return self._entity_kind

    def definition(self, control_type: ControlType) -> SourceDefinition:
        return get_view_definition(self._entity_kind, control_type)

    def count_candidates(self, control_type: ControlType) -> int:
        definition = self.definition(control_type)
        view, key = self._view(definition)
        if definition.distinct_keys:
            stmt = select(func.count(distinct(key))).select_from(view)
        else:
            stmt = select(func.count()).select_from(view)
        try:
            with self._engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise self._fetch_error("count_candidates", exc, definition) from exc

    @with_timing("LECTURA_PAGINA", slow_threshold_ms=5000)
    def fetch_page(self, control_type: ControlType, offset: int, limit: int) -> List[SourceRecord]:
        """
        Pagina de candidatos ordenada por clave.

        En vistas con claves repetidas se pagina sobre las claves distintas y
        se toma la primera fila de cada clave.
        """
        definition = self.definition(control_type)
        view, key = self._view(definition)
        try:
            with self._engine.connect() as conn:
                if definition.distinct_keys:
                    keys_stmt = select(key).distinct().order_by(key).limit(limit).offset(offset)
                    keys = [row[0] for row in conn.execute(keys_stmt)]
                    if not keys:
                        return []
                    rows_stmt = select(literal_column("*")).select_from(view).where(key.in_(keys)).order_by(key)
                    rows = conn.execute(rows_stmt).mappings().all()
                else:
                    rows_stmt = select(literal_column("*")).select_from(view).order_by(key).limit(limit).offset(offset)
                    rows = conn.execute(rows_stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise self._fetch_error("fetch_page", exc, definition, offset=offset, limit=limit) from exc

        records: List[SourceRecord] = []
        seen = set()
        for row in rows:
            fields = _normalize_row(row)
            entity_key = _key_text(fields.get(definition.key_column))
            if definition.distinct_keys:
                if entity_key in seen:
                    continue
                seen.add(entity_key)
            records.append(SourceRecord(entity_key=entity_key, fields=fields))

        logger.debug(
            f"{definition.view_name}: {len(records)} registros (offset {offset}, limit {limit})"
        )
        return records

    def fetch_base(self, entity_key: str) -> Optional[Dict[str, Any]]:
        """Fila de la vista completa de la entidad para `entity_key`, o None."""
        definition = get_base_definition(self._entity_kind)
        view, key = self._view(definition)
        stmt = select(literal_column("*")).select_from(view).where(key == entity_key).limit(1)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise self._fetch_error("fetch_base", exc, definition, entity_key=entity_key) from exc
        return _normalize_row(row) if row is not None else None

    def _view(self, definition: SourceDefinition):
        key = column(definition.key_column)
        view = table(definition.view_name, key, schema=self._schema)
        return view, view.c[definition.key_column]

    def _fetch_error(self, operation: str, exc: Exception, definition: SourceDefinition, **context: Any) -> SyncError:
        details = {
            "view": definition.view_name,
            "operation": operation,
            "entity_kind": definition.entity_kind.value,
            "control_type": definition.control_type.value,
        }
        details.update(context)
        return SyncError(
            SyncErrorKind.PAGE_FETCH,
            f"Error leyendo {definition.view_name} ({operation}): {exc}",
            details=details,
        )
