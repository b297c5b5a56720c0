"""
DTOs de la API de sincronizacion.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from odontoprev_sync.domain.entities import BatchResult, ControlRecord, SyncRunReport


class BatchResultDTO(BaseModel):
    """Contadores de una fase."""
    attempted: int
    succeeded: int
    failed: int
    pages: int = 0

    @classmethod
    def from_entity(cls, result: BatchResult) -> "BatchResultDTO":
        return cls(**result.to_dict())


class SyncRunResponseDTO(BaseModel):
    """Resultado de una corrida de una entidad."""
    entity_kind: str
    skipped: bool = Field(False, description="True si ya habia una corrida en curso")
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    phases: Dict[str, BatchResultDTO] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_report(cls, entity_kind: str, report: Optional[SyncRunReport]) -> "SyncRunResponseDTO":
        if report is None:
            return cls(entity_kind=entity_kind, skipped=True)
        return cls(
            entity_kind=entity_kind,
            started_at=report.started_at,
            finished_at=report.finished_at,
            phases={k.value: BatchResultDTO.from_entity(v) for k, v in report.phases.items()},
            errors={k.value: v for k, v in report.errors.items()},
        )


class SyncTriggerResponseDTO(BaseModel):
    """Respuesta del disparo manual (una o varias entidades)."""
    runs: List[SyncRunResponseDTO]


class ControlRecordDTO(BaseModel):
    """Fila del ledger de control."""
    id: Optional[int] = None
    entity_kind: str
    entity_key: str
    control_type: str
    status: str
    attempts: int
    error_message: Optional[str] = None
    response: Optional[str] = None
    created_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    succeeded_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, entity_kind: str, record: ControlRecord) -> "ControlRecordDTO":
        return cls(
            id=record.id,
            entity_kind=entity_kind,
            entity_key=record.entity_key,
            control_type=record.control_type.value,
            status=record.status.value,
            attempts=record.attempts,
            error_message=record.error_message,
            response=record.response,
            created_at=record.created_at,
            last_attempt_at=record.last_attempt_at,
            succeeded_at=record.succeeded_at,
        )
