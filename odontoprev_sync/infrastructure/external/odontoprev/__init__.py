"""
Clientes HTTP de OdontoPrev (autenticacion y escritura).
"""
from odontoprev_sync.infrastructure.external.odontoprev.api_client import OdontoprevApiClient, is_already_registered
from odontoprev_sync.infrastructure.external.odontoprev.auth_client import (
    OdontoprevAuthClient,
    OdontoprevCredentials,
)

__all__ = [
    "OdontoprevApiClient",
    "OdontoprevAuthClient",
    "OdontoprevCredentials",
    "is_already_registered",
]
