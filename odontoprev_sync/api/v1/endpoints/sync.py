"""
Endpoints para disparar la sincronizacion con OdontoPrev y consultar el ledger.

La corrida es sincrona y bloqueante: se ejecuta en un thread separado para
no bloquear el event loop. Es solo un disparador; el trabajo periodico lo
hace el scheduler (scripts/run_sync.py --loop).
"""
import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from odontoprev_sync.api.v1.dependencies.sync_deps import get_sync_container
from odontoprev_sync.application.dto.sync_dto import (
    ControlRecordDTO,
    SyncRunResponseDTO,
    SyncTriggerResponseDTO,
)
from odontoprev_sync.infrastructure.container import SyncContainer
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind


router = APIRouter(prefix="/sync", tags=["Sync"])


def _parse_entities(entity: str) -> List[EntityKind]:
    if entity == "all":
        return [EntityKind.COMPANY, EntityKind.BENEFICIARY]
    try:
        return [EntityKind(entity)]
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Entidad desconocida: {entity}",
        ) from None


def _run_entities(
    container: SyncContainer,
    entities: List[EntityKind],
    phase: Optional[ControlType],
) -> SyncTriggerResponseDTO:
    """Ejecuta las entidades pedidas a traves del scheduler (respeta la guarda)."""
    runs = []
    for entity_kind in entities:
        report = container.scheduler.trigger(entity_kind, phase)
        runs.append(SyncRunResponseDTO.from_report(entity_kind.value, report))
    return SyncTriggerResponseDTO(runs=runs)


@router.post("/{entity}", response_model=SyncTriggerResponseDTO)
async def trigger_sync(
    entity: str,
    phase: Optional[ControlType] = Query(None, description="Ejecutar solo esta fase"),
    container: SyncContainer = Depends(get_sync_container),
) -> SyncTriggerResponseDTO:
    """
    Dispara la sincronizacion de `company`, `beneficiary` o `all`.

    Una entidad con corrida en curso se informa con `skipped=true`.
    """
    entities = _parse_entities(entity)
    logger.info(
        f"Sincronizacion manual solicitada: {entity}"
        + (f" (fase {phase.value})" if phase else "")
    )
    return await asyncio.to_thread(_run_entities, container, entities, phase)


@router.get("/control/{entity_key}", response_model=List[ControlRecordDTO])
async def get_control_records(
    entity_key: str,
    entity: Optional[EntityKind] = Query(None, description="Filtrar por entidad"),
    container: SyncContainer = Depends(get_sync_container),
) -> List[ControlRecordDTO]:
    """Registros del ledger para una clave de entidad (empresa o matricula)."""
    kinds = [entity] if entity else [EntityKind.COMPANY, EntityKind.BENEFICIARY]

    def _load() -> List[ControlRecordDTO]:
        rows: List[ControlRecordDTO] = []
        for kind in kinds:
            for record in container.ledgers[kind].list_by_entity(entity_key):
                rows.append(ControlRecordDTO.from_entity(kind.value, record))
        return rows

    return await asyncio.to_thread(_load)
