"""
Interfaces (puertos) de la capa de aplicacion.
"""
from odontoprev_sync.application.interfaces.sync_ports import (
    AuthPort,
    Credentials,
    LedgerStore,
    RemotePort,
    SourcePort,
)

__all__ = [
    "AuthPort",
    "Credentials",
    "LedgerStore",
    "RemotePort",
    "SourcePort",
]
