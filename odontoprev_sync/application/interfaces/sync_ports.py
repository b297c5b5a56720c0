"""
Puertos de la sincronizacion con OdontoPrev.

Estos contratos existen para:
- Que el nucleo (ledger, lotes, orquestador) no dependa de requests ni de SQLAlchemy.
- Facilitar tests unitarios con fakes en memoria.

Todas las implementaciones son sincronas y bloqueantes; los fallos se
reportan como SyncError con el `kind` indicado en cada metodo.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from odontoprev_sync.domain.entities import ControlRecord, SourceRecord, Token
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind, SyncStatus


@dataclass(frozen=True)
class Credentials:
    """Par de tokens vigente para una llamada a la API."""

    primary: Token
    secondary: Token


class AuthPort(Protocol):
    """Autoridades que emiten los dos tokens encadenados."""

    def fetch_primary_token(self) -> Tuple[str, float]:
        """Obtiene (valor, ttl_segundos) del token de la API. Falla con AUTHENTICATION."""
        ...

    def exchange_secondary_token(self, primary_token: str) -> Tuple[str, float]:
        """Canjea un token primario vigente por el token de login. Falla con AUTHENTICATION."""
        ...


class RemotePort(Protocol):
    """Operaciones de escritura en OdontoPrev."""

    def submit(
        self,
        entity_kind: EntityKind,
        control_type: ControlType,
        payload: Mapping[str, Any],
        credentials: Credentials,
    ) -> str:
        """Envia el payload y retorna el cuerpo de la respuesta. Falla con REMOTE_COMMUNICATION."""
        ...


class SourcePort(Protocol):
    """Lectura de las vistas de integracion de una entidad. Falla con PAGE_FETCH."""

    def count_candidates(self, control_type: ControlType) -> int:
        ...

    def fetch_page(self, control_type: ControlType, offset: int, limit: int) -> List[SourceRecord]:
        ...

    def fetch_base(self, entity_key: str) -> Optional[Dict[str, Any]]:
        """Fila completa (vista base) usada para completar una alteracion."""
        ...


class LedgerStore(Protocol):
    """Persistencia de registros de control. Falla con PERSISTENCE."""

    def find(self, entity_key: str, control_type: ControlType) -> Optional[ControlRecord]:
        ...

    def insert(self, record: ControlRecord) -> ControlRecord:
        """Inserta; una violacion de unicidad se reporta como DUPLICATE_KEY."""
        ...

    def save(self, record: ControlRecord) -> ControlRecord:
        ...

    def list_by_entity(self, entity_key: str) -> List[ControlRecord]:
        ...

    def count_by_status(self, status: SyncStatus) -> int:
        ...
