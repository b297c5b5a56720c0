"""
Procesamiento de un candidato de una fase.

Secuencia por item:
1. combinar con la vista base (solo ALTERATION) y normalizar
2. validar campos obligatorios (un rechazo queda como ERROR en el ledger,
   sin tokens ni red)
3. find_or_create en el ledger (SUCCESS previo = nada que hacer)
4. obtener tokens
5. enviar a OdontoPrev
6. mark_success / mark_error

Toda la secuencia corre con la clave tomada en el ledger. Cualquier fallo
se propaga para que el procesador de lotes lo cuente.
"""
import json
from enum import Enum
from typing import Any, Dict, Optional

from loguru import logger

from odontoprev_sync.application.interfaces.sync_ports import RemotePort, SourcePort
from odontoprev_sync.application.services.auth_breaker import AuthFailureBreaker
from odontoprev_sync.application.services.control_ledger import ControlLedger
from odontoprev_sync.application.services.field_merger import FieldMerger, has_value
from odontoprev_sync.application.services.token_cache import TokenCache
from odontoprev_sync.domain.entities import SourceRecord
from odontoprev_sync.domain.entities.source_definition import SourceDefinition
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


class ItemOutcome(str, Enum):
    """Resultado de un item procesado sin error."""
    SYNCED = "synced"
    ALREADY_SYNCED = "already_synced"


def serialize_payload(payload: Dict[str, Any]) -> str:
    """JSON estable del payload (es lo que se persiste y lo que se envia)."""
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)


class SyncItemHandler:
    """Handler de items de una fase (entidad + tipo de control)."""

    def __init__(
        self,
        *,
        definition: SourceDefinition,
        source: SourcePort,
        ledger: ControlLedger,
        tokens: TokenCache,
        remote: RemotePort,
        breaker: AuthFailureBreaker,
        merger: Optional[FieldMerger] = None,
    ) -> None:
        self._definition = definition
        self._source = source
        self._ledger = ledger
        self._tokens = tokens
        self._remote = remote
        self._breaker = breaker
        self._merger = merger or FieldMerger(definition.date_fields)

    def __call__(self, item: SourceRecord) -> ItemOutcome:
        return self.handle(item)

    def handle(self, item: SourceRecord) -> ItemOutcome:
        control_type = self._definition.control_type

        # Un intento completo por clave: otro hilo con la misma clave espera
        # y luego ve el resultado en el ledger
        with self._ledger.hold(item.entity_key, control_type):
            try:
                payload = self.build_payload(item)
                self.validate(item, payload)
            except SyncError as exc:
                if exc.kind is not SyncErrorKind.VALIDATION:
                    raise
                if self._record_validation_failure(item, exc):
                    return ItemOutcome.ALREADY_SYNCED
                raise

            # Corte abierto: falla sin tocar el ledger ni las autoridades
            self._breaker.check()
            return self._submit(item, payload)

    def _submit(self, item: SourceRecord, payload: Dict[str, Any]) -> ItemOutcome:
        definition = self._definition
        control_type = definition.control_type

        payload_json = serialize_payload(payload)
        record, is_new = self._ledger.find_or_create(item.entity_key, control_type, payload_json)
        if is_new:
            logger.debug(f"Primer intento de {item.entity_key}/{control_type.value}")
        elif record.is_success:
            logger.debug(f"{item.entity_key}/{control_type.value} ya sincronizado, se omite")
            return ItemOutcome.ALREADY_SYNCED

        try:
            credentials = self._tokens.obtain_credentials()
        except SyncError as exc:
            self._breaker.record_failure(exc)
            self._ledger.mark_error(record, f"[{exc.kind.value}] {exc.message}")
            raise exc.with_context(entity_key=item.entity_key, control_type=control_type.value)
        self._breaker.record_success()

        try:
            response = self._remote.submit(
                definition.entity_kind,
                control_type,
                json.loads(payload_json),
                credentials,
            )
        except Exception as exc:
            error = SyncError.wrap(
                SyncErrorKind.REMOTE_COMMUNICATION,
                exc,
                entity_key=item.entity_key,
                control_type=control_type.value,
            )
            self._ledger.mark_error(record, f"[{error.kind.value}] {error.message}")
            raise error from exc

        self._ledger.mark_success(record, response)
        return ItemOutcome.SYNCED

    def build_payload(self, item: SourceRecord) -> Dict[str, Any]:
        """Registro listo para enviar: combinado con la base en ALTERATION, normalizado siempre."""
        if not self._definition.merges_with_base:
            return self._merger.normalize(item.fields)

        base = self._source.fetch_base(item.entity_key)
        if base is None:
            logger.debug(f"{item.entity_key}: sin fila en la vista base, se usa solo la alteracion")
            return self._merger.normalize(item.fields)
        return self._merger.merge(self._apply_aliases(base), item.fields)

    def validate(self, item: SourceRecord, payload: Dict[str, Any]) -> None:
        """
        Raises:
            SyncError(VALIDATION): clave vacia o campos obligatorios ausentes
        """
        if not has_value(item.entity_key):
            raise SyncError(
                SyncErrorKind.VALIDATION,
                f"Registro de {self._definition.view_name} sin clave",
                details={"view": self._definition.view_name},
            )
        missing = [name for name in self._definition.required_fields if not has_value(payload.get(name))]
        if missing:
            raise SyncError(
                SyncErrorKind.VALIDATION,
                f"{item.entity_key}: campos obligatorios ausentes: {', '.join(missing)}",
                details={
                    "entity_key": item.entity_key,
                    "control_type": self._definition.control_type.value,
                    "missing": missing,
                },
            )

    def _record_validation_failure(self, item: SourceRecord, error: SyncError) -> bool:
        """
        Deja el rechazo en el ledger, sin tokens ni red.

        Returns:
            True si la clave ya estaba sincronizada (SUCCESS no se toca)
        """
        if not has_value(item.entity_key):
            logger.warning(f"{error.message}: sin clave, no se registra en el ledger")
            return False

        control_type = self._definition.control_type
        record, _ = self._ledger.find_or_create(
            item.entity_key, control_type, serialize_payload(item.fields)
        )
        if record.is_success:
            logger.debug(f"{item.entity_key}/{control_type.value} ya sincronizado, se ignora el rechazo")
            return True
        self._ledger.mark_error(record, f"[{error.kind.value}] {error.message}")
        return False

    def _apply_aliases(self, base: Dict[str, Any]) -> Dict[str, Any]:
        aliases = self._definition.base_aliases
        if not aliases:
            return base
        return {aliases.get(name, name): value for name, value in base.items()}
