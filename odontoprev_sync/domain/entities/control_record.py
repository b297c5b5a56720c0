"""
Registro de control de sincronizacion (una fila del ledger).
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from odontoprev_sync.shared.constants.sync_constants import ControlType, SyncStatus


@dataclass
class ControlRecord:
    """
    Estado durable de la sincronizacion de una entidad para un tipo de operacion.

    Existe a lo sumo un registro por (entity_key, control_type). Los registros
    nunca se borran; un SUCCESS es definitivo.
    """

    entity_key: str
    control_type: ControlType
    status: SyncStatus = SyncStatus.PENDING
    attempts: int = 0
    payload: Optional[str] = None
    response: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    succeeded_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    def __repr__(self) -> str:
        return (
            f"<ControlRecord(id={self.id}, entity_key={self.entity_key}, "
            f"control_type={self.control_type.value}, status={self.status.value}, attempts={self.attempts})>"
        )
