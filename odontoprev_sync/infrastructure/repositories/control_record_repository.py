"""
Implementación del ledger de control usando SQLAlchemy.

Cada operacion abre su propia sesion transaccional: el ledger se usa desde
varios hilos y una sesion no se comparte entre ellos.
"""
from typing import List, Optional, Type

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from odontoprev_sync.domain.entities import ControlRecord
from odontoprev_sync.infrastructure.database.models import ControlSyncMixin
from odontoprev_sync.infrastructure.database.session import session_scope
from odontoprev_sync.shared.constants.sync_constants import ControlType, SyncStatus
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


class ControlRecordRepository:
    """Implementación de LedgerStore sobre una tabla de control."""

    def __init__(self, session_factory: sessionmaker, model: Type[ControlSyncMixin]):
        """
        Args:
            session_factory: fabrica de sesiones SQLAlchemy
            model: modelo ORM de la tabla de control de la entidad
        """
        self._session_factory = session_factory
        self._model = model

    @property
    def table_name(self) -> str:
        return self._model.__tablename__

    def find(self, entity_key: str, control_type: ControlType) -> Optional[ControlRecord]:
        """Obtiene el registro de (entity_key, control_type), si existe."""
        model = self._model
        try:
            with session_scope(self._session_factory) as session:
                db_record = session.execute(
                    select(model).where(
                        model.entity_key == entity_key,
                        model.control_type == control_type,
                    )
                ).scalar_one_or_none()
                return self._to_entity(db_record) if db_record is not None else None
        except SQLAlchemyError as exc:
            raise self._persistence_error("find", exc, entity_key, control_type) from exc

    def insert(self, record: ControlRecord) -> ControlRecord:
        """Inserta un registro nuevo; la violacion de unicidad se reporta como DUPLICATE_KEY."""
        db_record = self._model(
            entity_key=record.entity_key,
            control_type=record.control_type,
            status=record.status,
            attempts=record.attempts,
            payload=record.payload,
            response=record.response,
            error_message=record.error_message,
            last_attempt_at=record.last_attempt_at,
            succeeded_at=record.succeeded_at,
        )
        if record.created_at is not None:
            db_record.created_at = record.created_at
        try:
            with session_scope(self._session_factory) as session:
                session.add(db_record)
                session.flush()
                session.refresh(db_record)
                return self._to_entity(db_record)
        except IntegrityError as exc:
            raise SyncError(
                SyncErrorKind.DUPLICATE_KEY,
                f"Ya existe registro de control {record.entity_key}/{record.control_type.value}",
                details={
                    "table": self.table_name,
                    "entity_key": record.entity_key,
                    "control_type": record.control_type.value,
                },
            ) from exc
        except SQLAlchemyError as exc:
            raise self._persistence_error("insert", exc, record.entity_key, record.control_type) from exc

    def save(self, record: ControlRecord) -> ControlRecord:
        """Persiste los campos mutables de un registro existente."""
        if record.id is None:
            raise SyncError(
                SyncErrorKind.PERSISTENCE,
                "No se puede guardar un registro de control sin id",
                details={"entity_key": record.entity_key, "control_type": record.control_type.value},
            )
        try:
            with session_scope(self._session_factory) as session:
                db_record = session.get(self._model, record.id)
                if db_record is None:
                    raise SyncError(
                        SyncErrorKind.PERSISTENCE,
                        f"Registro de control {record.id} no existe en {self.table_name}",
                        details={"id": record.id, "entity_key": record.entity_key},
                    )
                db_record.status = record.status
                db_record.attempts = record.attempts
                db_record.payload = record.payload
                db_record.response = record.response
                db_record.error_message = record.error_message
                db_record.last_attempt_at = record.last_attempt_at
                db_record.succeeded_at = record.succeeded_at
                session.flush()
                return self._to_entity(db_record)
        except SQLAlchemyError as exc:
            raise self._persistence_error("save", exc, record.entity_key, record.control_type) from exc

    def list_by_entity(self, entity_key: str) -> List[ControlRecord]:
        """Todos los registros de una entidad, ordenados por id."""
        model = self._model
        try:
            with session_scope(self._session_factory) as session:
                rows = session.execute(
                    select(model).where(model.entity_key == entity_key).order_by(model.id)
                ).scalars().all()
                return [self._to_entity(row) for row in rows]
        except SQLAlchemyError as exc:
            raise self._persistence_error("list_by_entity", exc, entity_key, None) from exc

    def count_by_status(self, status: SyncStatus) -> int:
        model = self._model
        try:
            with session_scope(self._session_factory) as session:
                return int(session.execute(
                    select(func.count()).select_from(model).where(model.status == status)
                ).scalar_one())
        except SQLAlchemyError as exc:
            raise self._persistence_error("count_by_status", exc, None, None) from exc

    def _persistence_error(
        self,
        operation: str,
        exc: Exception,
        entity_key: Optional[str],
        control_type: Optional[ControlType],
    ) -> SyncError:
        return SyncError(
            SyncErrorKind.PERSISTENCE,
            f"Error de persistencia en {self.table_name}.{operation}: {exc}",
            details={
                "table": self.table_name,
                "operation": operation,
                "entity_key": entity_key,
                "control_type": control_type.value if control_type else None,
            },
        )

    @staticmethod
    def _to_entity(db_record: ControlSyncMixin) -> ControlRecord:
        """Convierte el modelo ORM a entidad del dominio."""
        return ControlRecord(
            id=db_record.id,
            entity_key=db_record.entity_key,
            control_type=ControlType(db_record.control_type),
            status=SyncStatus(db_record.status),
            attempts=db_record.attempts or 0,
            payload=db_record.payload,
            response=db_record.response,
            error_message=db_record.error_message,
            created_at=db_record.created_at,
            last_attempt_at=db_record.last_attempt_at,
            succeeded_at=db_record.succeeded_at,
        )
