"""
Autoridades de token de OdontoPrev.

- Token primario: OAuth2 client_credentials en `/oauth2/token`, con el
  app-token en Basic auth. Responde `access_token` y `expires_in`.
- Token secundario: login de empresa en `/empresa-login/1.0/api/auth/token`
  (appId, usuario, senha) presentando el primario. Responde `accessToken`
  y normalmente no informa expiracion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests
from loguru import logger

from odontoprev_sync.infrastructure.external.odontoprev.http_client import OdontoprevHttpClient
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


PRIMARY_TOKEN_PATH = "/oauth2/token"
SECONDARY_TOKEN_PATH = "/empresa-login/1.0/api/auth/token"

DEFAULT_PRIMARY_TTL = 3600


@dataclass(frozen=True)
class OdontoprevCredentials:
    app_token: str
    login_user: str
    login_password: str
    login_app_id: str

    def __repr__(self) -> str:
        return f"<OdontoprevCredentials(login_user={self.login_user}, app_id={self.login_app_id})>"


class OdontoprevAuthClient(OdontoprevHttpClient):
    """Implementacion de AuthPort sobre requests."""

    def __init__(
        self,
        credentials: OdontoprevCredentials,
        *,
        auth_url: str,
        secondary_default_ttl: float = 3600,
        session: Optional[requests.Session] = None,
        **http_options: Any,
    ) -> None:
        super().__init__(session=session, **http_options)
        self._creds = credentials
        self._auth_url = auth_url.rstrip("/")
        self._secondary_default_ttl = secondary_default_ttl

    def fetch_primary_token(self) -> Tuple[str, float]:
        if not self._creds.app_token:
            raise SyncError(
                SyncErrorKind.AUTHENTICATION,
                "ODONTOPREV_APP_TOKEN no configurado",
                details={"reason": "configuration"},
            )
        resp = self._request(
            "POST",
            f"{self._auth_url}{PRIMARY_TOKEN_PATH}",
            error_kind=SyncErrorKind.AUTHENTICATION,
            headers={
                "Authorization": f"Basic {self._creds.app_token}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data={"grant_type": "client_credentials"},
        )
        body = self._json(resp)
        token = body.get("access_token")
        if not token:
            raise SyncError(
                SyncErrorKind.AUTHENTICATION,
                "Respuesta de /oauth2/token sin access_token",
                details={"keys": sorted(body.keys())},
            )
        ttl = _as_ttl(body.get("expires_in"), DEFAULT_PRIMARY_TTL)
        logger.debug(f"Token primario obtenido (expires_in: {ttl:.0f}s)")
        return token, ttl

    def exchange_secondary_token(self, primary_token: str) -> Tuple[str, float]:
        resp = self._request(
            "POST",
            f"{self._auth_url}{SECONDARY_TOKEN_PATH}",
            error_kind=SyncErrorKind.AUTHENTICATION,
            headers={
                "Authorization": f"Bearer {primary_token}",
                "Content-Type": "application/json",
            },
            json={
                "appId": self._creds.login_app_id,
                "usuario": self._creds.login_user,
                "senha": self._creds.login_password,
            },
        )
        body = self._json(resp)
        token = body.get("accessToken") or body.get("access_token")
        if not token:
            raise SyncError(
                SyncErrorKind.AUTHENTICATION,
                "Respuesta del login de empresa sin accessToken",
                details={"keys": sorted(body.keys())},
            )
        ttl = _as_ttl(body.get("expiresIn") or body.get("expires_in"), self._secondary_default_ttl)
        logger.debug(f"Token de login de empresa obtenido (ttl: {ttl:.0f}s)")
        return token, ttl

    @staticmethod
    def _json(resp: requests.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as exc:
            raise SyncError(
                SyncErrorKind.AUTHENTICATION,
                f"Respuesta de autenticacion no es JSON: {resp.text[:200]}",
                details={"http_status": resp.status_code},
            ) from exc
        if not isinstance(body, dict):
            raise SyncError(SyncErrorKind.AUTHENTICATION, "Respuesta de autenticacion inesperada")
        return body


def _as_ttl(raw: Any, default: float) -> float:
    try:
        ttl = float(raw)
    except (TypeError, ValueError):
        return float(default)
    return ttl if ttl > 0 else float(default)
