"""
Ledger de control de sincronizacion.

Garantiza a lo sumo un intento exitoso por (entity_key, control_type):

- SUCCESS es definitivo: se retorna sin cambios.
- ERROR / PENDING / PROCESSING se reabren: payload nuevo, PROCESSING,
  attempts + 1, error y respuesta limpios.
- Si no existe, se crea con attempts = 1 en PROCESSING.

La unicidad la impone la base (constraint unico); una violacion al insertar
dispara una nueva lectura en lugar de un segundo insert. Dentro del proceso,
un lock por clave serializa los llamadores concurrentes. `hold()` expone ese
lock para que un intento completo (ledger, tokens, envio, marcado) se
ejecute sin otro hilo en la misma clave.
"""
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from loguru import logger

from odontoprev_sync.application.interfaces.sync_ports import LedgerStore
from odontoprev_sync.application.services.key_lock import KeyedLockManager
from odontoprev_sync.domain.entities import ControlRecord
from odontoprev_sync.shared.constants.sync_constants import ControlType, SyncStatus
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind
from odontoprev_sync.shared.utils.datetime_utils import DateTimeUtils


# Limite de textos persistidos (respuestas/errores largos de la API)
MAX_TEXT_LENGTH = 4000

# Veces que se reintenta find-or-create ante DUPLICATE_KEY
MAX_INSERT_RACES = 2


def _truncate(text: Optional[str]) -> Optional[str]:
    if text is None or len(text) <= MAX_TEXT_LENGTH:
        return text
    return text[:MAX_TEXT_LENGTH]


class ControlLedger:
    """
    Operaciones del ledger sobre un LedgerStore.

    Args:
        store: persistencia de registros de control
        max_attempts: limite de intentos por registro (0 = sin limite)
        locks: gestor de locks por clave (uno nuevo si no se indica)
        clock: fuente de "ahora" para los timestamps
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        max_attempts: int = 0,
        locks: Optional[KeyedLockManager] = None,
        clock: Callable = DateTimeUtils.now_utc,
    ) -> None:
        self._store = store
        self._max_attempts = max_attempts
        self._locks = locks or KeyedLockManager()
        self._clock = clock

    @contextmanager
    def hold(self, entity_key: str, control_type: ControlType) -> Iterator[None]:
        """Mantiene la clave tomada durante un intento completo (reentrante)."""
        with self._locks.hold((entity_key, control_type)):
            yield

    def find_or_create(
        self,
        entity_key: str,
        control_type: ControlType,
        payload: str,
    ) -> Tuple[ControlRecord, bool]:
        """
        Obtiene el registro de la clave preparandolo para un nuevo intento.

        Returns:
            (registro, es_nuevo)

        Raises:
            SyncError(RETRIES_EXHAUSTED): si el registro alcanzo max_attempts
            SyncError(PERSISTENCE): si la persistencia falla
        """
        with self._locks.hold((entity_key, control_type)):
            for race in range(MAX_INSERT_RACES + 1):
                existing = self._store.find(entity_key, control_type)
                if existing is not None:
                    return self._reopen(existing, payload), False

                now = self._clock()
                candidate = ControlRecord(
                    entity_key=entity_key,
                    control_type=control_type,
                    status=SyncStatus.PROCESSING,
                    attempts=1,
                    payload=payload,
                    created_at=now,
                    last_attempt_at=now,
                )
                try:
                    created = self._store.insert(candidate)
                except SyncError as exc:
                    if exc.kind is not SyncErrorKind.DUPLICATE_KEY:
                        raise
                    logger.warning(
                        f"Registro de control {entity_key}/{control_type.value} creado por otro proceso, "
                        f"releyendo (intento {race + 1})"
                    )
                    continue
                logger.debug(f"Registro de control creado: {created!r}")
                return created, True

        raise SyncError(
            SyncErrorKind.PERSISTENCE,
            f"No se pudo crear ni leer el registro de control {entity_key}/{control_type.value}",
            details={"entity_key": entity_key, "control_type": control_type.value},
        )

    def _reopen(self, record: ControlRecord, payload: str) -> ControlRecord:
        if record.status == SyncStatus.SUCCESS:
            return record

        if self._max_attempts and record.attempts >= self._max_attempts:
            raise SyncError(
                SyncErrorKind.RETRIES_EXHAUSTED,
                f"Registro {record.entity_key}/{record.control_type.value} agoto sus "
                f"{self._max_attempts} intentos",
                details={
                    "entity_key": record.entity_key,
                    "control_type": record.control_type.value,
                    "attempts": record.attempts,
                },
            )

        record.payload = payload
        record.status = SyncStatus.PROCESSING
        record.attempts += 1
        record.error_message = None
        record.response = None
        record.last_attempt_at = self._clock()
        return self._store.save(record)

    def mark_success(self, record: ControlRecord, response: Optional[str]) -> ControlRecord:
        record.status = SyncStatus.SUCCESS
        record.response = _truncate(response)
        record.error_message = None
        record.succeeded_at = self._clock()
        saved = self._store.save(record)
        logger.info(f"Sincronizado {record.entity_key}/{record.control_type.value} (intento {record.attempts})")
        return saved

    def mark_error(self, record: ControlRecord, message: str) -> ControlRecord:
        record.status = SyncStatus.ERROR
        record.error_message = _truncate(message)
        record.last_attempt_at = self._clock()
        saved = self._store.save(record)
        logger.warning(
            f"Error sincronizando {record.entity_key}/{record.control_type.value} "
            f"(intento {record.attempts}): {message}"
        )
        return saved

    def list_by_entity(self, entity_key: str) -> List[ControlRecord]:
        return self._store.list_by_entity(entity_key)

    def count_by_status(self, status: SyncStatus) -> int:
        return self._store.count_by_status(status)
