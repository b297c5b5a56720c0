"""
Corte por fallos de autenticacion consecutivos dentro de una fase.

Tras `threshold` fallos seguidos la fase deja de llamar a las autoridades de
token: los items restantes fallan de inmediato (y se cuentan como fallidos).
Un exito reinicia el conteo.
"""
import threading

from loguru import logger

from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


class AuthFailureBreaker:
    """Contador de fallos de autenticacion, seguro entre hilos."""

    def __init__(self, threshold: int = 3, *, name: str = "fase") -> None:
        self._threshold = threshold
        self._name = name
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._last_error: str = ""

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    @property
    def is_open(self) -> bool:
        """True si se alcanzo el umbral (threshold <= 0 desactiva el corte)."""
        with self._lock:
            return self._threshold > 0 and self._consecutive_failures >= self._threshold

    def check(self) -> None:
        """
        Raises:
            SyncError(AUTHENTICATION): si el corte esta abierto
        """
        if self.is_open:
            raise SyncError(
                SyncErrorKind.AUTHENTICATION,
                f"Autenticacion suspendida en {self._name} tras "
                f"{self._threshold} fallos consecutivos: {self._last_error}",
                details={"short_circuit": True, "threshold": self._threshold},
            )

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0

    def record_failure(self, error: SyncError) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._last_error = error.message
            opened = self._threshold > 0 and self._consecutive_failures == self._threshold
        if opened:
            logger.error(
                f"[{self._name}] {self._threshold} fallos de autenticacion consecutivos; "
                f"los items restantes fallaran sin llamar a la autoridad"
            )
