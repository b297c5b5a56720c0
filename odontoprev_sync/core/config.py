"""
Configuracion central del servicio de sincronizacion.
Gestiona variables de entorno y configuraciones globales.
Soporta configuracion dinamica para desarrollo (ENVIRONMENT=development)
y produccion (ENVIRONMENT=production).
"""
from typing import Dict, List, Tuple
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field

from odontoprev_sync.shared.constants.sync_constants import (
    ControlType,
    EntityKind,
    DEFAULT_PHASE_ORDER,
)
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    - DATABASE_URL se puede especificar completa o por componentes
    - Las vistas de integracion viven en el esquema ERP_SCHEMA (vacio = sin esquema)
    - El orden de fases se declara por tipo de entidad (lista separada por comas)
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="OdontoPrev Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Base de datos - Componentes separados
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="odontoprev_user")
    DATABASE_PASSWORD: str = Field(default="odontoprev_pass")
    DATABASE_NAME: str = Field(default="odontoprev_db")

    # Base de datos - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # Esquema del ERP donde estan las vistas de integracion
    ERP_SCHEMA: str = Field(default="TASY")

    # OdontoPrev - API y autenticacion
    ODONTOPREV_BASE_URL: str = Field(default="https://apim-hml.odontoprev.com.br")
    ODONTOPREV_AUTH_URL: str = Field(default="https://apim-hml.odontoprev.com.br")
    ODONTOPREV_APP_TOKEN: str = Field(default="")
    ODONTOPREV_LOGIN_USER: str = Field(default="")
    ODONTOPREV_LOGIN_PASSWORD: str = Field(default="")
    ODONTOPREV_LOGIN_APP_ID: str = Field(default="")
    ODONTOPREV_TIMEOUT_S: int = Field(default=30)
    ODONTOPREV_MAX_RETRIES: int = Field(default=3)
    ODONTOPREV_MIN_BACKOFF_S: float = Field(default=0.8)
    ODONTOPREV_MAX_BACKOFF_S: float = Field(default=20.0)

    # Tokens
    TOKEN_SAFETY_MARGIN_SECONDS: int = Field(default=300)
    # El login de empresa no informa expiracion: se asume este TTL
    SECONDARY_TOKEN_DEFAULT_TTL: int = Field(default=3600)

    # Sincronizacion
    SYNC_BATCH_SIZE: int = Field(default=50)
    SYNC_MAX_WORKERS: int = Field(default=1)
    # 0 = sin limite de intentos
    SYNC_MAX_ATTEMPTS: int = Field(default=0)
    SYNC_AUTH_FAILURE_THRESHOLD: int = Field(default=3)
    COMPANY_PHASE_ORDER: str = Field(default="EXCLUSION,ALTERATION,ADDITION")
    BENEFICIARY_PHASE_ORDER: str = Field(default="ADDITION,ALTERATION,EXCLUSION")
    SCHEDULER_INTERVAL_SECONDS: float = Field(default=10.0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/odontoprev_sync.log")

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    def phase_orders(self) -> Dict[EntityKind, Tuple[ControlType, ...]]:
        """Orden de fases validado para cada tipo de entidad."""
        return {
            EntityKind.COMPANY: parse_phase_order(self.COMPANY_PHASE_ORDER, EntityKind.COMPANY),
            EntityKind.BENEFICIARY: parse_phase_order(self.BENEFICIARY_PHASE_ORDER, EntityKind.BENEFICIARY),
        }

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def parse_phase_order(raw: str, entity_kind: EntityKind) -> Tuple[ControlType, ...]:
    """
    Parsea un orden de fases del tipo "EXCLUSION,ALTERATION,ADDITION".

    Una cadena vacia usa el orden por defecto de la entidad. Fases
    desconocidas o repetidas son un error de configuracion.
    """
    names = [part.strip().upper() for part in (raw or "").split(",") if part.strip()]
    if not names:
        return DEFAULT_PHASE_ORDER[entity_kind]

    phases: List[ControlType] = []
    for name in names:
        try:
            phase = ControlType(name)
        except ValueError:
            raise SyncError(
                SyncErrorKind.CONFIGURATION,
                f"Fase desconocida '{name}' en el orden de {entity_kind.value}",
                details={"entity_kind": entity_kind.value, "phase_order": raw},
            ) from None
        if phase in phases:
            raise SyncError(
                SyncErrorKind.CONFIGURATION,
                f"Fase repetida '{name}' en el orden de {entity_kind.value}",
                details={"entity_kind": entity_kind.value, "phase_order": raw},
            )
        phases.append(phase)
    return tuple(phases)


# Instancia global de configuracion
settings = Settings()
