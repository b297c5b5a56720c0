"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from odontoprev_sync.infrastructure.database.models import (
    BeneficiaryControlSyncModel,
    CompanyControlSyncModel,
    CONTROL_MODELS,
)
