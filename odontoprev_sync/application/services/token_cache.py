"""
Cache de los dos tokens encadenados de OdontoPrev.

- Token primario: emitido por la autoridad OAuth2 de la API.
- Token secundario: login de empresa, se canjea presentando un primario vigente.

Cada token vive en un `TokenSlot` protegido por su propio lock: la
verificacion y el refresco ocurren bajo el lock, por lo que hay a lo sumo
un refresco en curso por slot y los hilos que esperaban ven su resultado.

El cache no es un singleton: se construye explicitamente con su autoridad y
se descarta con `invalidate()`.
"""
import threading
import time
from typing import Callable, Optional, Tuple

from loguru import logger

from odontoprev_sync.application.interfaces.sync_ports import AuthPort, Credentials
from odontoprev_sync.domain.entities import Token
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


Clock = Callable[[], float]
TokenFetcher = Callable[[], Tuple[str, float]]

DEFAULT_SAFETY_MARGIN_SECONDS = 300.0


class TokenSlot:
    """Un token cacheado con su lock de refresco."""

    def __init__(self, name: str, *, clock: Clock, safety_margin_seconds: float) -> None:
        self.name = name
        self._clock = clock
        self._safety_margin_seconds = safety_margin_seconds
        self._lock = threading.Lock()
        self._token: Optional[Token] = None
        self.refresh_count = 0

    def get(self, fetch: TokenFetcher) -> Token:
        """
        Retorna el token vigente o lo refresca con `fetch`.

        Raises:
            SyncError(AUTHENTICATION): si la autoridad falla o no entrega token
        """
        with self._lock:
            now = self._clock()
            if self._token is not None and self._token.is_valid(now):
                return self._token

            logger.debug(f"Token {self.name} ausente o vencido, solicitando uno nuevo")
            try:
                value, ttl_seconds = fetch()
            except SyncError as exc:
                raise exc.with_context(token=self.name)
            except Exception as exc:
                raise SyncError.wrap(SyncErrorKind.AUTHENTICATION, exc, token=self.name) from exc

            if not value:
                raise SyncError(
                    SyncErrorKind.AUTHENTICATION,
                    f"La autoridad del token {self.name} no retorno un valor",
                    details={"token": self.name},
                )

            self._token = Token(
                value=value,
                issued_at=now,
                ttl_seconds=float(ttl_seconds),
                safety_margin_seconds=self._safety_margin_seconds,
            )
            self.refresh_count += 1
            logger.info(f"Token {self.name} renovado (ttl: {float(ttl_seconds):.0f}s)")
            return self._token

    def clear(self) -> None:
        with self._lock:
            self._token = None


class TokenCache:
    """Cache de los tokens primario y secundario."""

    def __init__(
        self,
        auth: AuthPort,
        *,
        safety_margin_seconds: float = DEFAULT_SAFETY_MARGIN_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self._auth = auth
        self._clock = clock
        self._primary = TokenSlot("primario", clock=clock, safety_margin_seconds=safety_margin_seconds)
        self._secondary = TokenSlot("secundario", clock=clock, safety_margin_seconds=safety_margin_seconds)

    @property
    def primary_slot(self) -> TokenSlot:
        return self._primary

    @property
    def secondary_slot(self) -> TokenSlot:
        return self._secondary

    def obtain_primary(self) -> Token:
        return self._primary.get(self._auth.fetch_primary_token)

    def obtain_secondary(self, primary: Optional[Token] = None) -> Token:
        """
        Retorna el token secundario vigente.

        El canje requiere un primario vigente: si el recibido esta vencido
        (o no se recibe), se refresca el primario antes de canjear.
        """

        def exchange() -> Tuple[str, float]:
            current = primary
            if current is None or not current.is_valid(self._clock()):
                current = self.obtain_primary()
            return self._auth.exchange_secondary_token(current.value)

        return self._secondary.get(exchange)

    def obtain_credentials(self) -> Credentials:
        """Par de tokens listo para una llamada a la API."""
        primary = self.obtain_primary()
        secondary = self.obtain_secondary(primary)
        return Credentials(primary=primary, secondary=secondary)

    def invalidate(self) -> None:
        """Descarta ambos tokens; la proxima llamada vuelve a la autoridad."""
        self._primary.clear()
        self._secondary.clear()
        logger.debug("Cache de tokens invalidado")
