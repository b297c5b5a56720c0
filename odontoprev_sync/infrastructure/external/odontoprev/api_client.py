"""
Cliente de escritura de la API de OdontoPrev.

Cada (entidad, fase) tiene un endpoint fijo. El payload es el registro ya
combinado y normalizado; el cliente no interpreta sus campos.

Una INCLUSION rechazada porque la entidad ya existe en OdontoPrev
(HTTP 417, "já cadastrado", "existe para o titular") se considera exitosa:
el estado remoto ya es el deseado.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import requests
from loguru import logger

from odontoprev_sync.application.interfaces.sync_ports import Credentials
from odontoprev_sync.infrastructure.external.odontoprev.http_client import OdontoprevHttpClient
from odontoprev_sync.shared.constants.sync_constants import (
    ALREADY_REGISTERED_MARKERS,
    ALREADY_REGISTERED_STATUS,
    ControlType,
    EntityKind,
)
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind
from odontoprev_sync.shared.utils.monitoring import with_timing


@dataclass(frozen=True)
class Endpoint:
    method: str
    path: str


ENDPOINTS: Dict[Tuple[EntityKind, ControlType], Endpoint] = {
    (EntityKind.COMPANY, ControlType.ADDITION): Endpoint("POST", "/empresa/2.0/empresas/contrato/empresarial"),
    (EntityKind.COMPANY, ControlType.ALTERATION): Endpoint("PUT", "/empresa/2.0/empresas/alterar"),
    (EntityKind.COMPANY, ControlType.EXCLUSION): Endpoint("POST", "/empresa/2.0/empresas/inativar"),
    (EntityKind.BENEFICIARY, ControlType.ADDITION): Endpoint("POST", "/cadastroonline-pj/1.0/incluir"),
    (EntityKind.BENEFICIARY, ControlType.ALTERATION): Endpoint("PUT", "/cadastroonline-pj/1.0/alterar"),
    (EntityKind.BENEFICIARY, ControlType.EXCLUSION): Endpoint(
        "POST", "/cadastroonline-pj/1.0/inativarAssociadoEmpresarial"
    ),
}

SECONDARY_TOKEN_HEADER = "AuthorizationOdonto"


def is_already_registered(error: SyncError) -> bool:
    """Indica si el fallo remoto significa que la entidad ya existe en OdontoPrev."""
    if error.details.get("http_status") == ALREADY_REGISTERED_STATUS:
        return True
    text = f"{error.message} {error.details.get('body') or ''}".lower()
    return any(marker in text for marker in ALREADY_REGISTERED_MARKERS)


class OdontoprevApiClient(OdontoprevHttpClient):
    """Implementacion de RemotePort sobre requests."""

    def __init__(
        self,
        *,
        base_url: str,
        session: Optional[requests.Session] = None,
        **http_options: Any,
    ) -> None:
        super().__init__(session=session, **http_options)
        self._base_url = base_url.rstrip("/")

    def endpoint_for(self, entity_kind: EntityKind, control_type: ControlType) -> Endpoint:
        endpoint = ENDPOINTS.get((entity_kind, control_type))
        if endpoint is None:
            raise SyncError(
                SyncErrorKind.CONFIGURATION,
                f"No hay endpoint para {entity_kind.value}/{control_type.value}",
            )
        return endpoint

    @with_timing("ENVIO_ODONTOPREV", slow_threshold_ms=10000)
    def submit(
        self,
        entity_kind: EntityKind,
        control_type: ControlType,
        payload: Mapping[str, Any],
        credentials: Credentials,
    ) -> str:
        endpoint = self.endpoint_for(entity_kind, control_type)
        url = f"{self._base_url}{endpoint.path}"
        headers = {
            "Authorization": f"Bearer {credentials.primary.value}",
            SECONDARY_TOKEN_HEADER: f"Bearer {credentials.secondary.value}",
            "Content-Type": "application/json",
        }
        try:
            resp = self._request(
                endpoint.method,
                url,
                error_kind=SyncErrorKind.REMOTE_COMMUNICATION,
                headers=headers,
                json=dict(payload),
            )
        except SyncError as exc:
            if control_type == ControlType.ADDITION and is_already_registered(exc):
                logger.info(
                    f"{entity_kind.value} ya registrado en OdontoPrev, se considera sincronizado: {exc.message}"
                )
                return exc.details.get("body") or exc.message
            raise
        return resp.text
