"""
Modelos de base de datos (ORM).

Un ledger por tipo de entidad, con columnas identicas: los codigos de
empresa y las matriculas de beneficiarios nunca comparten tabla.
"""
from typing import Dict, Type

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func

from odontoprev_sync.infrastructure.database.session import Base
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind, SyncStatus


class ControlSyncMixin:
    """Columnas comunes de un registro de control de sincronizacion."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_key = Column(String(64), nullable=False, index=True)
    control_type = Column(SQLEnum(ControlType, native_enum=False, length=20), nullable=False)
    status = Column(SQLEnum(SyncStatus, native_enum=False, length=20), nullable=False, default=SyncStatus.PENDING)
    attempts = Column(Integer, nullable=False, default=0)
    payload = Column(Text, nullable=True)
    response = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    succeeded_at = Column(DateTime(timezone=True), nullable=True)

    @declared_attr
    def __table_args__(cls):
        return (UniqueConstraint("entity_key", "control_type", name=f"uk_{cls.__tablename__}_chave"),)

    def __repr__(self):
        return (
            f"<{type(self).__name__}(id={self.id}, entity_key={self.entity_key}, "
            f"control_type={self.control_type}, status={self.status})>"
        )


class CompanyControlSyncModel(ControlSyncMixin, Base):
    """Ledger de sincronizacion de empresas."""

    __tablename__ = "tb_controle_sync_odontoprev"


class BeneficiaryControlSyncModel(ControlSyncMixin, Base):
    """Ledger de sincronizacion de beneficiarios."""

    __tablename__ = "tb_controle_sync_odontoprev_benef"


CONTROL_MODELS: Dict[EntityKind, Type[ControlSyncMixin]] = {
    EntityKind.COMPANY: CompanyControlSyncModel,
    EntityKind.BENEFICIARY: BeneficiaryControlSyncModel,
}
