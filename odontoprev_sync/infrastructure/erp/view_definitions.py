"""
Vistas de integracion del ERP por entidad y fase.

Fuente unica de verdad para:
- nombre de la vista y columna clave
- campos obligatorios y campos de fecha
- si la vista repite claves (empresas) y debe leerse DISTINCT

La vista de INCLUSION de cada entidad es la vista "completa" (base) con la
que se completa una ALTERACION.
"""

from __future__ import annotations

from typing import Dict, Tuple

from odontoprev_sync.domain.entities.source_definition import SourceDefinition
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


_COMPANY_DATE_FIELDS = (
    "DATA_INICIO_CONTRATO",
    "DATA_FIM_CONTRATO",
    "DATA_VIGENCIA",
    "DATA_INICIO_PLANO",
    "DATA_FIM_PLANO",
)


VIEW_DEFINITIONS: Dict[Tuple[EntityKind, ControlType], SourceDefinition] = {
    (EntityKind.COMPANY, ControlType.ADDITION): SourceDefinition(
        entity_kind=EntityKind.COMPANY,
        control_type=ControlType.ADDITION,
        view_name="VW_INTEGRACAO_ODONTOPREV",
        key_column="CODIGO_EMPRESA",
        required_fields=("CODIGO_EMPRESA", "CNPJ", "NOME_FANTASIA"),
        date_fields=_COMPANY_DATE_FIELDS,
        distinct_keys=True,
    ),
    (EntityKind.COMPANY, ControlType.ALTERATION): SourceDefinition(
        entity_kind=EntityKind.COMPANY,
        control_type=ControlType.ALTERATION,
        view_name="VW_INTEGRACAO_ODONTOPREV_ALT",
        key_column="CODIGO_EMPRESA",
        required_fields=("CODIGO_EMPRESA",),
        date_fields=_COMPANY_DATE_FIELDS,
        distinct_keys=True,
    ),
    (EntityKind.COMPANY, ControlType.EXCLUSION): SourceDefinition(
        entity_kind=EntityKind.COMPANY,
        control_type=ControlType.EXCLUSION,
        view_name="VW_INTEGRACAO_ODONTOPREV_EXC",
        key_column="CODIGOEMPRESA",
        required_fields=("CODIGOEMPRESA", "CODIGOMOTIVOFIMEMPRESA"),
        date_fields=("DATA_FIM_CONTRATO",),
        distinct_keys=True,
    ),
    (EntityKind.BENEFICIARY, ControlType.ADDITION): SourceDefinition(
        entity_kind=EntityKind.BENEFICIARY,
        control_type=ControlType.ADDITION,
        view_name="VW_INTEGRACAO_ODONTOPREV_BENEFICIARIOS",
        key_column="CODIGOMATRICULA",
        required_fields=("CODIGOMATRICULA", "CODIGOEMPRESA", "CPF", "NOMEDOBENEFICIARIO", "DATADENASCIMENTO"),
        date_fields=("DATADENASCIMENTO", "DTVIGENCIARETROATIVA"),
    ),
    (EntityKind.BENEFICIARY, ControlType.ALTERATION): SourceDefinition(
        entity_kind=EntityKind.BENEFICIARY,
        control_type=ControlType.ALTERATION,
        view_name="VW_INTEGRACAO_ODONTOPREV_BENEFICIARIOS_ALT",
        key_column="CODIGOMATRICULA",
        required_fields=("CODIGOMATRICULA",),
        date_fields=("DATANASCIMENTO", "DTVIGENCIARETROATIVA", "DATA_ASSOCIACAO"),
        # La vista base usa otros nombres para estas columnas
        base_aliases={
            "NOMEDOBENEFICIARIO": "NOMEBENEFICIARIO",
            "DATADENASCIMENTO": "DATANASCIMENTO",
        },
    ),
    (EntityKind.BENEFICIARY, ControlType.EXCLUSION): SourceDefinition(
        entity_kind=EntityKind.BENEFICIARY,
        control_type=ControlType.EXCLUSION,
        view_name="VW_INTEGRACAO_ODONTOPREV_BENEFICIARIOS_EXC",
        key_column="CODIGOMATRICULA",
        required_fields=("CODIGOMATRICULA", "CDASSOCIADO", "IDMOTIVO"),
        date_fields=("DATAINATIVACAO",),
    ),
}


def get_view_definition(entity_kind: EntityKind, control_type: ControlType) -> SourceDefinition:
    """
    Obtiene la definicion de vista para (entidad, fase).

    Raises:
        SyncError(CONFIGURATION): si no existe definicion
    """
    definition = VIEW_DEFINITIONS.get((entity_kind, control_type))
    if definition is None:
        raise SyncError(
            SyncErrorKind.CONFIGURATION,
            f"No hay vista configurada para {entity_kind.value}/{control_type.value}",
            details={"entity_kind": entity_kind.value, "control_type": control_type.value},
        )
    return definition


def get_base_definition(entity_kind: EntityKind) -> SourceDefinition:
    """Vista completa de la entidad (la de inclusion)."""
    return get_view_definition(entity_kind, ControlType.ADDITION)
