"""
Tests unitarios para TokenCache.

Verifica:
- reutilizacion del token hasta el margen de seguridad
- canje del secundario con un primario vigente
- a lo sumo un refresco por slot bajo concurrencia
- errores de la autoridad como AUTHENTICATION
"""
from __future__ import annotations

import threading
import time
from typing import List

import pytest

from odontoprev_sync.application.services.token_cache import TokenCache
from odontoprev_sync.domain.entities import Token
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


class TestToken:
    """Tests para la entidad Token."""

    def test_validity_window_respects_margin(self) -> None:
        """Valido mientras now < issued_at + ttl - margen."""
        token = Token(value="abc", issued_at=100.0, ttl_seconds=3600, safety_margin_seconds=300)

        assert token.is_valid(100.0 + 3299) is True
        assert token.is_valid(100.0 + 3300) is False

    def test_empty_value_is_never_valid(self) -> None:
        token = Token(value="", issued_at=0.0, ttl_seconds=3600)

        assert token.is_valid(1.0) is False

    def test_repr_hides_value(self) -> None:
        """El valor del token no aparece en logs."""
        token = Token(value="super-secreto", issued_at=0.0, ttl_seconds=60)

        assert "super-secreto" not in repr(token)


class TestTokenCachePrimary:
    """Tests del token primario."""

    def test_cached_until_margin_then_refreshed(self, fake_auth, clock) -> None:
        """TTL 3600 y margen 300: a los 3200s se reutiliza, a los 3400s se renueva."""
        cache = TokenCache(fake_auth, safety_margin_seconds=300, clock=clock)

        first = cache.obtain_primary()
        clock.advance(3200)
        second = cache.obtain_primary()

        assert second.value == first.value
        assert fake_auth.primary_calls == 1

        clock.advance(200)
        third = cache.obtain_primary()

        assert third.value != first.value
        assert fake_auth.primary_calls == 2

    def test_issued_at_uses_clock_before_fetch(self, fake_auth, clock) -> None:
        clock.advance(50)
        cache = TokenCache(fake_auth, clock=clock)

        assert cache.obtain_primary().issued_at == 50

    def test_authority_failure_is_authentication(self, fake_auth, clock) -> None:
        """La falla de la autoridad se propaga como AUTHENTICATION con el slot en detalles."""
        fake_auth.fail_primary = True
        cache = TokenCache(fake_auth, clock=clock)

        with pytest.raises(SyncError) as exc_info:
            cache.obtain_primary()

        assert exc_info.value.kind is SyncErrorKind.AUTHENTICATION
        assert exc_info.value.details["token"] == "primario"

    def test_failure_does_not_poison_cache(self, fake_auth, clock) -> None:
        """Tras un fallo, la siguiente llamada vuelve a intentar."""
        fake_auth.fail_primary = True
        cache = TokenCache(fake_auth, clock=clock)
        with pytest.raises(SyncError):
            cache.obtain_primary()

        fake_auth.fail_primary = False

        assert cache.obtain_primary().value == "primary-2"

    def test_unexpected_error_is_wrapped(self, clock) -> None:
        """Excepciones que no son SyncError se convierten en AUTHENTICATION."""

        class BrokenAuth:
            def fetch_primary_token(self):
                raise RuntimeError("boom")

            def exchange_secondary_token(self, primary_token):
                raise AssertionError("no deberia llamarse")

        cache = TokenCache(BrokenAuth(), clock=clock)

        with pytest.raises(SyncError) as exc_info:
            cache.obtain_primary()

        assert exc_info.value.kind is SyncErrorKind.AUTHENTICATION
        assert exc_info.value.details["cause"] == "RuntimeError"

    def test_empty_token_is_rejected(self, clock) -> None:
        class EmptyAuth:
            def fetch_primary_token(self):
                return "", 3600

            def exchange_secondary_token(self, primary_token):
                return "x", 3600

        cache = TokenCache(EmptyAuth(), clock=clock)

        with pytest.raises(SyncError) as exc_info:
            cache.obtain_primary()

        assert exc_info.value.kind is SyncErrorKind.AUTHENTICATION


class TestTokenCacheSecondary:
    """Tests del token secundario."""

    def test_credentials_exchange_with_current_primary(self, fake_auth, clock) -> None:
        cache = TokenCache(fake_auth, clock=clock)

        credentials = cache.obtain_credentials()

        assert credentials.primary.value == "primary-1"
        assert credentials.secondary.value == "secondary-1"
        assert fake_auth.exchanged_with == ["primary-1"]

    def test_secondary_reused_while_valid(self, fake_auth, clock) -> None:
        cache = TokenCache(fake_auth, clock=clock)

        cache.obtain_credentials()
        clock.advance(1000)
        cache.obtain_credentials()

        assert fake_auth.secondary_calls == 1

    def test_expired_primary_is_refreshed_before_exchange(self, fake_auth, clock) -> None:
        """Si el primario recibido vencio, se renueva antes de canjear."""
        fake_auth.primary_ttl = 600
        cache = TokenCache(fake_auth, safety_margin_seconds=300, clock=clock)
        first = cache.obtain_credentials()

        clock.advance(3400)
        secondary = cache.obtain_secondary(first.primary)

        assert secondary.value == "secondary-2"
        assert fake_auth.exchanged_with == ["primary-1", "primary-2"]

    def test_invalidate_forces_new_tokens(self, fake_auth, clock) -> None:
        cache = TokenCache(fake_auth, clock=clock)
        cache.obtain_credentials()

        cache.invalidate()
        credentials = cache.obtain_credentials()

        assert credentials.primary.value == "primary-2"
        assert credentials.secondary.value == "secondary-2"


class TestTokenCacheConcurrency:
    """Tests de concurrencia: un solo refresco por slot."""

    def test_single_refresh_under_threads(self, fake_auth) -> None:
        """Diez hilos pidiendo credenciales a la vez provocan un solo pedido por autoridad."""
        original = fake_auth.fetch_primary_token

        def slow_fetch():
            time.sleep(0.05)
            return original()

        fake_auth.fetch_primary_token = slow_fetch
        cache = TokenCache(fake_auth)
        barrier = threading.Barrier(10)
        values: List[str] = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            credentials = cache.obtain_credentials()
            with lock:
                values.append(f"{credentials.primary.value}|{credentials.secondary.value}")

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert fake_auth.primary_calls == 1
        assert fake_auth.secondary_calls == 1
        assert set(values) == {"primary-1|secondary-1"}
