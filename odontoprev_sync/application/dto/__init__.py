"""
DTOs de la capa de aplicacion.
"""
from odontoprev_sync.application.dto.sync_dto import (
    BatchResultDTO,
    ControlRecordDTO,
    SyncRunResponseDTO,
    SyncTriggerResponseDTO,
)

__all__ = [
    "BatchResultDTO",
    "ControlRecordDTO",
    "SyncRunResponseDTO",
    "SyncTriggerResponseDTO",
]
