"""
Entidades del dominio.
"""
from odontoprev_sync.domain.entities.control_record import ControlRecord
from odontoprev_sync.domain.entities.source_record import SourceRecord
from odontoprev_sync.domain.entities.sync_results import BatchResult, SyncRunReport
from odontoprev_sync.domain.entities.token import Token

__all__ = [
    "ControlRecord",
    "SourceRecord",
    "BatchResult",
    "SyncRunReport",
    "Token",
]
