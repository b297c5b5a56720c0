"""
Casos de uso de la sincronizacion con OdontoPrev.
"""
from odontoprev_sync.application.use_cases.sync_item_handler import ItemOutcome, SyncItemHandler
from odontoprev_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from odontoprev_sync.application.use_cases.sync_scheduler import SyncScheduler

__all__ = [
    "ItemOutcome",
    "SyncItemHandler",
    "SyncOrchestrator",
    "SyncScheduler",
]
