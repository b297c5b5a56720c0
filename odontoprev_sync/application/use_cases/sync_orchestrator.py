"""
Orquestador de la sincronizacion de una entidad.

Ejecuta las fases en el orden configurado para la entidad:
- BENEFICIARY: ADDITION -> ALTERATION -> EXCLUSION
- COMPANY:     EXCLUSION -> ALTERATION -> ADDITION

Por fase: cuenta candidatos; si no hay, registra y retorna un resultado
vacio sin tocar el ledger ni la red. Si hay, los procesa pagina a pagina.
El fallo de una fase (p. ej. lectura de pagina) se registra y la corrida
continua con la siguiente fase.
"""
from typing import Callable, Sequence

from loguru import logger

from odontoprev_sync.application.interfaces.sync_ports import RemotePort, SourcePort
from odontoprev_sync.application.services.auth_breaker import AuthFailureBreaker
from odontoprev_sync.application.services.batch_processor import PaginatedBatchProcessor
from odontoprev_sync.application.services.control_ledger import ControlLedger
from odontoprev_sync.application.services.token_cache import TokenCache
from odontoprev_sync.application.use_cases.sync_item_handler import SyncItemHandler
from odontoprev_sync.domain.entities import BatchResult, SyncRunReport
from odontoprev_sync.domain.entities.source_definition import SourceDefinition
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind
from odontoprev_sync.shared.utils.datetime_utils import DateTimeUtils
from odontoprev_sync.shared.utils.monitoring import with_logging


DefinitionLookup = Callable[[ControlType], SourceDefinition]


class SyncOrchestrator:
    """Corre las fases de una entidad contra OdontoPrev."""

    def __init__(
        self,
        *,
        entity_kind: EntityKind,
        phase_order: Sequence[ControlType],
        definition_for: DefinitionLookup,
        source: SourcePort,
        ledger: ControlLedger,
        tokens: TokenCache,
        remote: RemotePort,
        processor: PaginatedBatchProcessor,
        page_size: int = 50,
        auth_failure_threshold: int = 3,
    ) -> None:
        if len(set(phase_order)) != len(phase_order):
            raise SyncError(
                SyncErrorKind.CONFIGURATION,
                f"Orden de fases con repetidos para {entity_kind.value}",
                details={"phase_order": [p.value for p in phase_order]},
            )
        self._entity_kind = entity_kind
        self._phase_order = tuple(phase_order)
        self._definition_for = definition_for
        self._source = source
        self._ledger = ledger
        self._tokens = tokens
        self._remote = remote
        self._processor = processor
        self._page_size = page_size
        self._auth_failure_threshold = auth_failure_threshold

    @property
    def entity_kind(self) -> EntityKind:
        return self._entity_kind

    @property
    def phase_order(self) -> Sequence[ControlType]:
        return self._phase_order

    @property
    def ledger(self) -> ControlLedger:
        return self._ledger

    @with_logging("SINCRONIZACION_COMPLETA")
    def run_full(self) -> SyncRunReport:
        """Ejecuta todas las fases; un fallo de fase no detiene las siguientes."""
        return self.run_phases(self._phase_order)

    def run_phases(self, phases: Sequence[ControlType]) -> SyncRunReport:
        """Ejecuta las fases indicadas, en el orden recibido, aislando sus fallos."""
        report = SyncRunReport(entity_kind=self._entity_kind, started_at=DateTimeUtils.now_utc())
        for control_type in phases:
            try:
                report.phases[control_type] = self.run_phase(control_type)
            except Exception as exc:
                report.errors[control_type] = str(exc)
                logger.error(
                    f"Fase {control_type.value} de {self._entity_kind.value} abortada: {exc}"
                )
        report.finished_at = DateTimeUtils.now_utc()
        logger.info(f"Resumen de sincronizacion {report.summary()}")
        return report

    @with_logging("SINCRONIZACION_FASE", include_params=("control_type",))
    def run_phase(self, control_type: ControlType) -> BatchResult:
        """
        Procesa todos los candidatos de una fase.

        Raises:
            SyncError(PAGE_FETCH): si no se pueden contar o leer los candidatos
        """
        definition = self._definition_for(control_type)
        total = self._source.count_candidates(control_type)
        if total == 0:
            logger.info(f"Sin candidatos en {definition.view_name} para {control_type.value}")
            return BatchResult.empty()

        logger.info(f"{total} candidatos en {definition.view_name} para {control_type.value}")
        handler = SyncItemHandler(
            definition=definition,
            source=self._source,
            ledger=self._ledger,
            tokens=self._tokens,
            remote=self._remote,
            breaker=AuthFailureBreaker(
                self._auth_failure_threshold,
                name=f"{self._entity_kind.value}/{control_type.value}",
            ),
        )
        return self._processor.process(
            self._page_size,
            lambda offset, limit: self._source.fetch_page(control_type, offset, limit),
            handler,
        )
