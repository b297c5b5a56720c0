"""
Descripcion declarativa de una vista de integracion del ERP.
"""
from dataclasses import dataclass, field
from typing import Dict, Tuple

from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind


@dataclass(frozen=True)
class SourceDefinition:
    """
    Define de donde y como se leen los candidatos de una fase.

    - view_name: vista del ERP (sin esquema)
    - key_column: columna con la clave estable de la entidad (orden de paginacion)
    - required_fields: campos que deben estar presentes en el payload final
    - date_fields: campos que se normalizan a dd/mm/yyyy
    - distinct_keys: si True, la vista puede repetir claves y se toma la primera fila por clave
    - base_aliases: renombres de columnas de la vista base al nombre usado en esta vista
      (solo relevante para la alteracion)
    """

    entity_kind: EntityKind
    control_type: ControlType
    view_name: str
    key_column: str
    required_fields: Tuple[str, ...] = ()
    date_fields: Tuple[str, ...] = ()
    distinct_keys: bool = False
    base_aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def merges_with_base(self) -> bool:
        return self.control_type == ControlType.ALTERATION

    def __repr__(self) -> str:
        return f"<SourceDefinition({self.entity_kind.value}/{self.control_type.value}: {self.view_name})>"
