"""
Disparo periodico de la sincronizacion.

Cada entidad tiene su propia guarda: si una corrida sigue en curso cuando
llega el siguiente disparo, el disparo se omite. La guarda se libera siempre
al terminar la corrida, incluso con error.
"""
import threading
from typing import Dict, Iterable, Optional

from loguru import logger

from odontoprev_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from odontoprev_sync.domain.entities import SyncRunReport
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind


class SyncScheduler:
    """Ejecuta corridas sin solapamiento por entidad."""

    def __init__(self, orchestrators: Iterable[SyncOrchestrator], *, interval_seconds: float = 10.0) -> None:
        self._orchestrators: Dict[EntityKind, SyncOrchestrator] = {o.entity_kind: o for o in orchestrators}
        self._interval_seconds = interval_seconds
        self._running: Dict[EntityKind, threading.Lock] = {kind: threading.Lock() for kind in self._orchestrators}
        self._stop = threading.Event()

    @property
    def entity_kinds(self):
        return tuple(self._orchestrators)

    def is_running(self, entity_kind: EntityKind) -> bool:
        return self._running[entity_kind].locked()

    def trigger(
        self,
        entity_kind: EntityKind,
        control_type: Optional[ControlType] = None,
    ) -> Optional[SyncRunReport]:
        """
        Corre la entidad (o solo una de sus fases) si no hay otra corrida en curso.

        Returns:
            el reporte de la corrida, o None si se omitio
        """
        guard = self._running[entity_kind]
        if not guard.acquire(blocking=False):
            logger.info(f"Sincronizacion de {entity_kind.value} en curso, se omite este disparo")
            return None
        try:
            orchestrator = self._orchestrators[entity_kind]
            if control_type is not None:
                return orchestrator.run_phases((control_type,))
            return orchestrator.run_full()
        finally:
            guard.release()

    def run_once(self) -> Dict[EntityKind, Optional[SyncRunReport]]:
        """Dispara todas las entidades una vez (en el orden registrado)."""
        reports: Dict[EntityKind, Optional[SyncRunReport]] = {}
        for entity_kind in self._orchestrators:
            try:
                reports[entity_kind] = self.trigger(entity_kind)
            except Exception as exc:
                logger.exception(f"Error no controlado sincronizando {entity_kind.value}: {exc}")
                reports[entity_kind] = None
        return reports

    def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """
        Dispara ciclos cada `interval_seconds` hasta `stop()` (o `max_cycles`).

        Returns:
            numero de ciclos ejecutados
        """
        cycles = 0
        logger.info(f"Scheduler iniciado (intervalo: {self._interval_seconds}s)")
        while not self._stop.is_set():
            self.run_once()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self._stop.wait(self._interval_seconds)
        logger.info(f"Scheduler detenido tras {cycles} ciclos")
        return cycles

    def stop(self) -> None:
        self._stop.set()
