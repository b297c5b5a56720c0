"""
Tests unitarios para ControlLedger.

Verifica el ciclo de vida de un registro de control:
- creacion idempotente por (entity_key, control_type)
- reapertura de ERROR con attempts + 1 y error limpio
- SUCCESS definitivo
- carrera de insercion resuelta releyendo
- limite de intentos
"""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import List

import pytest

from odontoprev_sync.application.services.control_ledger import MAX_TEXT_LENGTH, ControlLedger
from odontoprev_sync.domain.entities import ControlRecord
from odontoprev_sync.infrastructure.database.models import CompanyControlSyncModel
from odontoprev_sync.infrastructure.repositories.control_record_repository import ControlRecordRepository
from odontoprev_sync.shared.constants.sync_constants import ControlType, SyncStatus
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


@pytest.fixture(params=["memory", "sqlite"])
def store(request, memory_store):
    """El ledger se prueba contra el store en memoria y contra SQLite."""
    if request.param == "memory":
        return memory_store
    session_factory = request.getfixturevalue("session_factory")
    return ControlRecordRepository(session_factory, CompanyControlSyncModel)


@pytest.fixture
def ledger(store) -> ControlLedger:
    return ControlLedger(store)


class TestFindOrCreate:
    """Tests para ControlLedger.find_or_create()."""

    def test_creates_processing_record(self, ledger) -> None:
        record, is_new = ledger.find_or_create("EMP001", ControlType.ADDITION, '{"a": 1}')

        assert is_new is True
        assert record.id is not None
        assert record.status == SyncStatus.PROCESSING
        assert record.attempts == 1
        assert record.payload == '{"a": 1}'
        assert record.created_at is not None

    def test_one_record_per_key_and_type(self, ledger, store) -> None:
        """La misma clave con otro tipo de control es otro registro."""
        ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")
        ledger.find_or_create("EMP001", ControlType.ALTERATION, "{}")
        again, is_new = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")

        assert is_new is False
        assert len(store.list_by_entity("EMP001")) == 2

    def test_alteration_lifecycle(self, ledger) -> None:
        """EMP001 ALTERATION: error, reintento con attempts 2, exito y tercera corrida sin cambios."""
        record, _ = ledger.find_or_create("EMP001", ControlType.ALTERATION, '{"v": 1}')
        ledger.mark_error(record, "HTTP 500")

        stored = ledger.list_by_entity("EMP001")[0]
        assert stored.status == SyncStatus.ERROR
        assert stored.error_message == "HTTP 500"

        retry, is_new = ledger.find_or_create("EMP001", ControlType.ALTERATION, '{"v": 2}')
        assert is_new is False
        assert retry.status == SyncStatus.PROCESSING
        assert retry.attempts == 2
        assert retry.error_message is None
        assert retry.payload == '{"v": 2}'

        ledger.mark_success(retry, '{"ok": true}')

        third, _ = ledger.find_or_create("EMP001", ControlType.ALTERATION, '{"v": 3}')
        assert third.status == SyncStatus.SUCCESS
        assert third.attempts == 2
        assert third.payload == '{"v": 2}'
        assert third.response == '{"ok": true}'
        assert third.succeeded_at is not None

    def test_success_is_sticky(self, ledger) -> None:
        record, _ = ledger.find_or_create("EMP001", ControlType.EXCLUSION, "{}")
        ledger.mark_success(record, "ok")

        for _ in range(3):
            again, _ = ledger.find_or_create("EMP001", ControlType.EXCLUSION, '{"otro": 1}')
            assert again.is_success
            assert again.attempts == 1

    def test_reopen_clears_previous_response(self, ledger) -> None:
        """Un registro reabierto no conserva respuesta ni error del intento anterior."""
        record, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")
        record.response = "parcial"
        ledger.mark_error(record, "falla")

        retry, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")

        assert retry.response is None
        assert retry.error_message is None

    def test_max_attempts_exhausted(self, store) -> None:
        ledger = ControlLedger(store, max_attempts=2)
        record, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")
        ledger.mark_error(record, "falla 1")
        record, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")
        ledger.mark_error(record, "falla 2")

        with pytest.raises(SyncError) as exc_info:
            ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")

        assert exc_info.value.kind is SyncErrorKind.RETRIES_EXHAUSTED
        assert exc_info.value.details["attempts"] == 2

    def test_concurrent_callers_create_one_record(self, ledger, store) -> None:
        """Varios hilos con la misma clave terminan con un unico registro."""
        results: List[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            _, is_new = ledger.find_or_create("EMP777", ControlType.ADDITION, "{}")
            with lock:
                results.append(is_new)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(store.list_by_entity("EMP777")) == 1


class TestInsertRace:
    """Carrera con otro proceso: el insert falla por unicidad y se relee."""

    def test_duplicate_key_triggers_reread(self, memory_store) -> None:
        class RacingStore:
            """Simula otro proceso que inserta entre el find y el insert."""

            def __init__(self, inner):
                self.inner = inner
                self.raced = False

            def find(self, entity_key, control_type):
                return self.inner.find(entity_key, control_type)

            def insert(self, record):
                if not self.raced:
                    self.raced = True
                    self.inner.insert(ControlRecord(
                        entity_key=record.entity_key,
                        control_type=record.control_type,
                        status=SyncStatus.ERROR,
                        attempts=1,
                    ))
                return self.inner.insert(record)

            def save(self, record):
                return self.inner.save(record)

            def list_by_entity(self, entity_key):
                return self.inner.list_by_entity(entity_key)

            def count_by_status(self, status):
                return self.inner.count_by_status(status)

        ledger = ControlLedger(RacingStore(memory_store))

        record, is_new = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")

        assert is_new is False
        assert record.attempts == 2
        assert record.status == SyncStatus.PROCESSING
        assert memory_store.inserts == 1

    def test_other_persistence_errors_propagate(self) -> None:
        class FailingStore:
            def find(self, entity_key, control_type):
                return None

            def insert(self, record):
                raise SyncError(SyncErrorKind.PERSISTENCE, "base caida")

        ledger = ControlLedger(FailingStore())

        with pytest.raises(SyncError) as exc_info:
            ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")

        assert exc_info.value.kind is SyncErrorKind.PERSISTENCE


class TestMarkAndQuery:
    """Tests de mark_success, mark_error y consultas."""

    def test_long_texts_are_truncated(self, ledger) -> None:
        record, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")

        saved = ledger.mark_error(record, "x" * (MAX_TEXT_LENGTH + 500))

        assert len(saved.error_message) == MAX_TEXT_LENGTH

    def test_mark_success_clears_error(self, ledger) -> None:
        record, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")
        record.error_message = "viejo"

        saved = ledger.mark_success(record, "ok")

        assert saved.error_message is None
        assert saved.status == SyncStatus.SUCCESS

    def test_count_by_status(self, ledger) -> None:
        ok, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")
        ko, _ = ledger.find_or_create("EMP002", ControlType.ADDITION, "{}")
        ledger.find_or_create("EMP003", ControlType.ADDITION, "{}")
        ledger.mark_success(ok, "ok")
        ledger.mark_error(ko, "falla")

        assert ledger.count_by_status(SyncStatus.SUCCESS) == 1
        assert ledger.count_by_status(SyncStatus.ERROR) == 1
        assert ledger.count_by_status(SyncStatus.PROCESSING) == 1
        assert ledger.count_by_status(SyncStatus.PENDING) == 0

    def test_list_by_entity_orders_by_id(self, ledger) -> None:
        ledger.find_or_create("EMP001", ControlType.EXCLUSION, "{}")
        ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")
        ledger.find_or_create("EMP002", ControlType.ADDITION, "{}")

        rows = ledger.list_by_entity("EMP001")

        assert [r.control_type for r in rows] == [ControlType.EXCLUSION, ControlType.ADDITION]

    def test_mark_error_stamps_last_attempt(self, memory_store) -> None:
        moments = iter([
            datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
            datetime(2024, 5, 1, 10, 0, 30, tzinfo=timezone.utc),
        ])
        ledger = ControlLedger(memory_store, clock=lambda: next(moments))
        record, _ = ledger.find_or_create("EMP001", ControlType.ADDITION, "{}")

        saved = ledger.mark_error(record, "HTTP 502")

        assert saved.last_attempt_at == datetime(2024, 5, 1, 10, 0, 30, tzinfo=timezone.utc)
        assert saved.created_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert memory_store.find("EMP001", ControlType.ADDITION).last_attempt_at == saved.last_attempt_at
