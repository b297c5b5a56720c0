"""
Resultados de procesamiento: por lote (fase) y por corrida completa.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind


@dataclass(frozen=True)
class BatchResult:
    """
    Contadores de un procesamiento paginado.

    Invariante: attempted == succeeded + failed.
    """

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    pages: int = 0

    @classmethod
    def empty(cls) -> "BatchResult":
        return cls()

    def to_dict(self) -> Dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "pages": self.pages,
        }


@dataclass
class SyncRunReport:
    """Resumen de una corrida completa de una entidad: resultado o error por fase."""

    entity_kind: EntityKind
    started_at: datetime
    finished_at: Optional[datetime] = None
    phases: Dict[ControlType, BatchResult] = field(default_factory=dict)
    errors: Dict[ControlType, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return sum(r.attempted for r in self.phases.values())

    @property
    def succeeded(self) -> int:
        return sum(r.succeeded for r in self.phases.values())

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.phases.values())

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or self.failed > 0

    def summary(self) -> str:
        """Linea de resumen para logs."""
        parts = []
        for control_type, result in self.phases.items():
            parts.append(f"{control_type.value}={result.succeeded}/{result.attempted}")
        for control_type in self.errors:
            parts.append(f"{control_type.value}=ERROR")
        return f"{self.entity_kind.value}: " + (", ".join(parts) if parts else "sin fases")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_kind": self.entity_kind.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "phases": {k.value: v.to_dict() for k, v in self.phases.items()},
            "errors": {k.value: v for k, v in self.errors.items()},
        }
