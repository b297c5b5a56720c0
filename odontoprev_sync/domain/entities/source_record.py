"""
Fila leida de una vista de integracion del ERP.
"""
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class SourceRecord:
    """
    Registro de solo lectura de una vista de integracion.

    - entity_key: valor de la columna clave (codigo de empresa o matricula)
    - fields: columnas de la vista, con nombres en mayusculas
    """

    entity_key: str
    fields: Dict[str, Any] = field(default_factory=dict)
