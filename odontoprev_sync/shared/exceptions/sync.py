"""
Error unico de la sincronizacion.

En lugar de una jerarquia de excepciones, cada fallo lleva un `kind` y un
mapa de detalles libre. Los llamadores deciden por `kind` en el borde.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from odontoprev_sync.shared.exceptions.base import AppException


class SyncErrorKind(str, Enum):
    """Categorias de fallo de la sincronizacion."""
    AUTHENTICATION = "AUTHENTICATION"
    REMOTE_COMMUNICATION = "REMOTE_COMMUNICATION"
    VALIDATION = "VALIDATION"
    PERSISTENCE = "PERSISTENCE"
    PAGE_FETCH = "PAGE_FETCH"
    CONFIGURATION = "CONFIGURATION"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    # Violacion de unicidad en el ledger; el ledger la resuelve releyendo
    DUPLICATE_KEY = "DUPLICATE_KEY"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"


_STATUS_BY_KIND = {
    SyncErrorKind.AUTHENTICATION: 502,
    SyncErrorKind.REMOTE_COMMUNICATION: 502,
    SyncErrorKind.VALIDATION: 422,
    SyncErrorKind.PERSISTENCE: 500,
    SyncErrorKind.PAGE_FETCH: 500,
    SyncErrorKind.CONFIGURATION: 500,
    SyncErrorKind.RETRIES_EXHAUSTED: 409,
    SyncErrorKind.DUPLICATE_KEY: 409,
    SyncErrorKind.LOCK_TIMEOUT: 503,
}


class SyncError(AppException):
    """
    Fallo de sincronizacion.

    Attributes:
        kind: categoria del fallo
        details: contexto libre (entity_key, control_type, http_status, ...)
        occurred_at: momento en que se construyo el error (UTC)
    """

    def __init__(
        self,
        kind: SyncErrorKind,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=_STATUS_BY_KIND.get(kind, 500),
            error_code=kind.value,
            details=details,
        )
        self.kind = kind
        self.occurred_at = datetime.now(timezone.utc)

    def with_context(self, **context: Any) -> "SyncError":
        """Agrega contexto sin pisar claves ya presentes."""
        for key, value in context.items():
            self.details.setdefault(key, value)
        return self

    @classmethod
    def wrap(cls, kind: SyncErrorKind, exc: BaseException, **context: Any) -> "SyncError":
        """
        Convierte una excepcion cualquiera en SyncError.

        Un SyncError existente se devuelve tal cual, solo enriquecido con contexto.
        """
        if isinstance(exc, SyncError):
            return exc.with_context(**context)
        details = dict(context)
        details["cause"] = type(exc).__name__
        return cls(kind, str(exc) or type(exc).__name__, details=details)

    def __repr__(self) -> str:
        return f"<SyncError(kind={self.kind.value}, message={self.message!r})>"
