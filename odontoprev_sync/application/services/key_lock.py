"""
Locks en proceso por clave.

Motivacion:
- El ledger garantiza unicidad en la base de datos, pero dos hilos del
  mismo proceso pueden intentar sincronizar la misma clave a la vez.
- Serializamos por (entity_key, control_type) sin bloquear claves distintas.

Caracteristicas:
- Un `threading.RLock` por clave, creado bajo demanda (reentrante: el
  handler mantiene la clave mientras el ledger la vuelve a pedir)
- Timeout configurable (None = espera indefinida)
- Cada clave cuenta sus poseedores; la entrada se elimina cuando sale el ultimo
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, Optional

from loguru import logger

from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


class _KeyEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.holders = 0


class KeyedLockManager:
    """
    Gestor de locks por clave.

    A diferencia de un registro global, cada instancia tiene su propio
    mapa de locks: el ledger que la crea es su unico dueno.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._timeout = timeout
        self._entries: Dict[Hashable, _KeyEntry] = {}
        self._meta_lock = threading.Lock()

    def _checkout(self, key: Hashable) -> _KeyEntry:
        with self._meta_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = _KeyEntry()
                self._entries[key] = entry
            entry.holders += 1
            return entry

    def _checkin(self, key: Hashable, entry: _KeyEntry) -> None:
        with self._meta_lock:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """
        Context manager que mantiene el lock de la clave.

        Raises:
            SyncError(LOCK_TIMEOUT): si no se obtiene el lock dentro del timeout

        Ejemplo:
            with locks.hold(("EMP001", ControlType.ALTERATION)):
                ...
        """
        entry = self._checkout(key)
        try:
            if self._timeout and self._timeout > 0:
                if not entry.lock.acquire(timeout=self._timeout):
                    logger.warning(f"Timeout adquiriendo lock para {key} (timeout: {self._timeout}s)")
                    raise SyncError(
                        SyncErrorKind.LOCK_TIMEOUT,
                        f"Timeout ({self._timeout}s) adquiriendo lock para {key}",
                        details={"key": str(key), "timeout": self._timeout},
                    )
            else:
                entry.lock.acquire()

            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def active_locks_count(self) -> int:
        """Retorna el numero de claves con poseedores o en espera (para monitoreo)."""
        with self._meta_lock:
            return len(self._entries)
