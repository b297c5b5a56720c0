"""
Transporte HTTP comun de los clientes de OdontoPrev (requests).

Requisitos cubiertos:
- timeouts explicitos
- rate-limit/backoff (429, 5xx) y errores de conexion
- 4xx (no 429): error inmediato, con status y cuerpo en los detalles
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import requests
from loguru import logger

from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


# Tamano maximo del cuerpo incluido en detalles/logs
_BODY_PREVIEW = 1000


class OdontoprevHttpClient:
    """Base de los clientes: sesion compartida y `_request` con backoff."""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30,
        max_retries: int = 3,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
        sleep=time.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._sleep = sleep

    def close(self) -> None:
        self._session.close()

    def _backoff(self, attempt: int, retry_after: Optional[str]) -> float:
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                return self._min_backoff_s
        # Exponencial simple + jitter proporcional
        base = min(self._max_backoff_s, self._min_backoff_s * (2 ** attempt))
        return base + (0.15 * base)

    def _request(
        self,
        method: str,
        url: str,
        *,
        error_kind: SyncErrorKind,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        data: Any = None,
    ) -> requests.Response:
        """
        Request HTTP con backoff para 429/5xx.

        Raises:
            SyncError(error_kind): fallo no recuperable o reintentos agotados.
                Los detalles incluyen `http_status` y `body` cuando hubo respuesta.
        """
        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    json=json,
                    data=data,
                    timeout=self._timeout_s,
                )
            except (requests.ConnectionError, requests.Timeout) as exc:
                if attempt >= self._max_retries:
                    raise SyncError(
                        error_kind,
                        f"{method} {url} fallo tras {attempt} reintentos: {exc}",
                        details={"url": url, "method": method, "cause": type(exc).__name__},
                    ) from exc
                sleep_s = self._backoff(attempt, None)
                logger.warning(f"{method} {url}: {type(exc).__name__}, reintentando en {sleep_s:.1f}s")
                self._sleep(sleep_s)
                continue
            except requests.RequestException as exc:
                raise SyncError(
                    error_kind,
                    f"{method} {url} fallo: {exc}",
                    details={"url": url, "method": method, "cause": type(exc).__name__},
                ) from exc

            if 200 <= resp.status_code < 300:
                return resp

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise self._http_error(error_kind, method, url, resp, f"tras {attempt} reintentos")
                sleep_s = self._backoff(attempt, resp.headers.get("Retry-After"))
                logger.warning(f"{method} {url}: HTTP {resp.status_code}, reintentando en {sleep_s:.1f}s")
                self._sleep(sleep_s)
                continue

            # Errores no recuperables
            raise self._http_error(error_kind, method, url, resp, "")

        raise SyncError(error_kind, f"{method} {url} sin respuesta", details={"url": url, "method": method})

    @staticmethod
    def _http_error(
        error_kind: SyncErrorKind,
        method: str,
        url: str,
        resp: requests.Response,
        suffix: str,
    ) -> SyncError:
        body = (resp.text or "")[:_BODY_PREVIEW]
        message = f"{method} {url} respondio {resp.status_code}"
        if suffix:
            message += f" {suffix}"
        if body:
            message += f": {body}"
        return SyncError(
            error_kind,
            message,
            details={"url": url, "method": method, "http_status": resp.status_code, "body": body},
        )
