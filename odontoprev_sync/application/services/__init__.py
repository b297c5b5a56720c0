"""
Servicios de aplicacion.

Contiene el nucleo reutilizable de la sincronizacion: cache de tokens,
combinacion de campos, ledger de control y procesamiento paginado.
"""
from odontoprev_sync.application.services.batch_processor import PaginatedBatchProcessor
from odontoprev_sync.application.services.control_ledger import ControlLedger
from odontoprev_sync.application.services.field_merger import FieldMerger, has_value
from odontoprev_sync.application.services.key_lock import KeyedLockManager
from odontoprev_sync.application.services.token_cache import TokenCache, TokenSlot

__all__ = [
    # Lotes
    "PaginatedBatchProcessor",
    # Ledger
    "ControlLedger",
    "KeyedLockManager",
    # Payload
    "FieldMerger",
    "has_value",
    # Autenticacion
    "TokenCache",
    "TokenSlot",
]
