"""
Ensamblado de la sincronizacion a partir de Settings.

Construye explicitamente cada colaborador (engine, clientes HTTP, cache de
tokens, ledgers y orquestadores) y los agrupa en un SyncContainer con un
`close()` que libera los recursos. No hay instancias ambientales: quien
llama decide cuando crear y cuando cerrar.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Dict, Optional

from loguru import logger
from sqlalchemy.engine import Engine

from odontoprev_sync.application.services.batch_processor import PaginatedBatchProcessor
from odontoprev_sync.application.services.control_ledger import ControlLedger
from odontoprev_sync.application.services.token_cache import TokenCache
from odontoprev_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from odontoprev_sync.application.use_cases.sync_scheduler import SyncScheduler
from odontoprev_sync.core.config import Settings
from odontoprev_sync.infrastructure.database.models import CONTROL_MODELS
from odontoprev_sync.infrastructure.database.session import build_session_factory, get_engine
from odontoprev_sync.infrastructure.erp.view_definitions import get_view_definition
from odontoprev_sync.infrastructure.external.odontoprev import (
    OdontoprevApiClient,
    OdontoprevAuthClient,
    OdontoprevCredentials,
)
from odontoprev_sync.infrastructure.repositories.control_record_repository import ControlRecordRepository
from odontoprev_sync.infrastructure.repositories.integration_view_repository import IntegrationViewRepository
from odontoprev_sync.shared.constants.sync_constants import EntityKind


@dataclass
class SyncContainer:
    """Colaboradores de la sincronizacion ya ensamblados."""

    settings: Settings
    engine: Engine
    auth_client: OdontoprevAuthClient
    api_client: OdontoprevApiClient
    tokens: TokenCache
    ledgers: Dict[EntityKind, ControlLedger]
    orchestrators: Dict[EntityKind, SyncOrchestrator]
    scheduler: SyncScheduler

    def orchestrator(self, entity_kind: EntityKind) -> SyncOrchestrator:
        return self.orchestrators[entity_kind]

    def close(self) -> None:
        """Detiene el scheduler, descarta tokens y cierra las sesiones HTTP (el engine lo cierra close_db)."""
        self.scheduler.stop()
        self.tokens.invalidate()
        self.auth_client.close()
        self.api_client.close()
        logger.debug("Contenedor de sincronizacion cerrado")


def build_from_settings(settings: Settings, *, engine: Optional[Engine] = None) -> SyncContainer:
    """
    Construye el contenedor completo.

    Raises:
        SyncError(CONFIGURATION): si el orden de fases configurado es invalido
    """
    phase_orders = settings.phase_orders()
    engine = engine or get_engine()
    session_factory = build_session_factory(engine)

    http_options = dict(
        timeout_s=settings.ODONTOPREV_TIMEOUT_S,
        max_retries=settings.ODONTOPREV_MAX_RETRIES,
        min_backoff_s=settings.ODONTOPREV_MIN_BACKOFF_S,
        max_backoff_s=settings.ODONTOPREV_MAX_BACKOFF_S,
    )
    auth_client = OdontoprevAuthClient(
        OdontoprevCredentials(
            app_token=settings.ODONTOPREV_APP_TOKEN,
            login_user=settings.ODONTOPREV_LOGIN_USER,
            login_password=settings.ODONTOPREV_LOGIN_PASSWORD,
            login_app_id=settings.ODONTOPREV_LOGIN_APP_ID,
        ),
        auth_url=settings.ODONTOPREV_AUTH_URL,
        secondary_default_ttl=settings.SECONDARY_TOKEN_DEFAULT_TTL,
        **http_options,
    )
    api_client = OdontoprevApiClient(base_url=settings.ODONTOPREV_BASE_URL, **http_options)
    tokens = TokenCache(auth_client, safety_margin_seconds=settings.TOKEN_SAFETY_MARGIN_SECONDS)

    ledgers: Dict[EntityKind, ControlLedger] = {}
    orchestrators: Dict[EntityKind, SyncOrchestrator] = {}
    for entity_kind in (EntityKind.COMPANY, EntityKind.BENEFICIARY):
        ledger = ControlLedger(
            ControlRecordRepository(session_factory, CONTROL_MODELS[entity_kind]),
            max_attempts=settings.SYNC_MAX_ATTEMPTS,
        )
        ledgers[entity_kind] = ledger
        orchestrators[entity_kind] = SyncOrchestrator(
            entity_kind=entity_kind,
            phase_order=phase_orders[entity_kind],
            definition_for=partial(get_view_definition, entity_kind),
            source=IntegrationViewRepository(engine, entity_kind, schema=settings.ERP_SCHEMA),
            ledger=ledger,
            tokens=tokens,
            remote=api_client,
            processor=PaginatedBatchProcessor(
                max_workers=settings.SYNC_MAX_WORKERS,
                name=f"sync-{entity_kind.value}",
            ),
            page_size=settings.SYNC_BATCH_SIZE,
            auth_failure_threshold=settings.SYNC_AUTH_FAILURE_THRESHOLD,
        )

    logger.info(
        f"Sincronizacion ensamblada: lote {settings.SYNC_BATCH_SIZE}, "
        f"workers {settings.SYNC_MAX_WORKERS}, esquema ERP '{settings.ERP_SCHEMA or '-'}'"
    )
    return SyncContainer(
        settings=settings,
        engine=engine,
        auth_client=auth_client,
        api_client=api_client,
        tokens=tokens,
        ledgers=ledgers,
        orchestrators=orchestrators,
        scheduler=SyncScheduler(
            orchestrators.values(),
            interval_seconds=settings.SCHEDULER_INTERVAL_SECONDS,
        ),
    )
