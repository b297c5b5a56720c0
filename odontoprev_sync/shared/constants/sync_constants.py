"""
Constantes de la sincronizacion con OdontoPrev.
Define tipos de entidad, tipos de control, estados del ledger y formatos de fecha.
"""
from enum import Enum
from typing import Dict, Tuple


class EntityKind(str, Enum):
    """Tipos de entidad sincronizados con OdontoPrev."""
    COMPANY = "company"
    BENEFICIARY = "beneficiary"


class ControlType(str, Enum):
    """Tipo de operacion enviada a OdontoPrev."""
    ADDITION = "ADDITION"
    ALTERATION = "ALTERATION"
    EXCLUSION = "EXCLUSION"


class SyncStatus(str, Enum):
    """Estados de un registro de control."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


# Orden de fases por defecto de cada entidad
DEFAULT_PHASE_ORDER: Dict[EntityKind, Tuple[ControlType, ...]] = {
    EntityKind.BENEFICIARY: (ControlType.ADDITION, ControlType.ALTERATION, ControlType.EXCLUSION),
    EntityKind.COMPANY: (ControlType.EXCLUSION, ControlType.ALTERATION, ControlType.ADDITION),
}

# Representacion canonica de fechas en el payload
CANONICAL_DATE_FORMAT = "%d/%m/%Y"

# Formatos aceptados desde las vistas del ERP (se prueban en este orden)
ACCEPTED_DATE_FORMATS: Tuple[str, ...] = (
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y-%m-%d",
    "%d/%m/%y",
    "%d-%m-%y",
)

# Marcadores de "ya registrado" en respuestas de OdontoPrev
ALREADY_REGISTERED_STATUS = 417
ALREADY_REGISTERED_MARKERS: Tuple[str, ...] = (
    "já cadastrado",
    "ja cadastrado",
    "existe para o titular",
)
