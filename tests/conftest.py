"""
Configuración de fixtures para pytest.

Incluye fakes en memoria de los puertos de la sincronizacion y una base
SQLite en memoria para el ledger.
"""
import threading
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from odontoprev_sync.domain.entities import ControlRecord, SourceRecord
from odontoprev_sync.domain.entities.source_definition import SourceDefinition
from odontoprev_sync.infrastructure.database.session import Base, build_session_factory, init_db
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind, SyncStatus
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite://"


class FakeClock:
    """Reloj manual (segundos)."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAuth:
    """Autoridades de token que cuentan sus llamadas."""

    def __init__(self, primary_ttl: float = 3600, secondary_ttl: float = 3600):
        self.primary_ttl = primary_ttl
        self.secondary_ttl = secondary_ttl
        self.primary_calls = 0
        self.secondary_calls = 0
        self.exchanged_with: List[str] = []
        self.fail_primary = False
        self._lock = threading.Lock()

    def fetch_primary_token(self) -> Tuple[str, float]:
        with self._lock:
            self.primary_calls += 1
            calls = self.primary_calls
        if self.fail_primary:
            raise SyncError(SyncErrorKind.AUTHENTICATION, "credenciales invalidas")
        return f"primary-{calls}", self.primary_ttl

    def exchange_secondary_token(self, primary_token: str) -> Tuple[str, float]:
        with self._lock:
            self.secondary_calls += 1
            self.exchanged_with.append(primary_token)
            calls = self.secondary_calls
        return f"secondary-{calls}", self.secondary_ttl


class InMemoryLedgerStore:
    """LedgerStore en memoria con la misma semantica de unicidad que la tabla."""

    def __init__(self):
        self._records: Dict[Tuple[str, ControlType], ControlRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self.inserts = 0
        self.saves = 0

    def find(self, entity_key, control_type):
        with self._lock:
            record = self._records.get((entity_key, control_type))
            return replace(record) if record is not None else None

    def insert(self, record):
        with self._lock:
            key = (record.entity_key, record.control_type)
            if key in self._records:
                raise SyncError(SyncErrorKind.DUPLICATE_KEY, f"duplicado {key}")
            stored = replace(record, id=self._next_id)
            self._next_id += 1
            self._records[key] = stored
            self.inserts += 1
            return replace(stored)

    def save(self, record):
        with self._lock:
            self._records[(record.entity_key, record.control_type)] = replace(record)
            self.saves += 1
            return replace(record)

    def list_by_entity(self, entity_key):
        with self._lock:
            rows = [replace(r) for (k, _), r in self._records.items() if k == entity_key]
        return sorted(rows, key=lambda r: r.id)

    def count_by_status(self, status):
        with self._lock:
            return sum(1 for r in self._records.values() if r.status == status)

    def all(self) -> List[ControlRecord]:
        with self._lock:
            return [replace(r) for r in self._records.values()]


class FakeSource:
    """SourcePort en memoria: candidatos por fase, ya ordenados por clave."""

    def __init__(
        self,
        candidates: Optional[Dict[ControlType, List[SourceRecord]]] = None,
        base: Optional[Dict[str, dict]] = None,
        fail_phases: Iterable[ControlType] = (),
    ):
        self.candidates = {
            k: sorted(v, key=lambda r: r.entity_key) for k, v in (candidates or {}).items()
        }
        self.base = base or {}
        self.fail_phases = set(fail_phases)
        self.count_calls: List[ControlType] = []
        self.page_calls: List[Tuple[ControlType, int, int]] = []
        self.base_calls: List[str] = []

    def count_candidates(self, control_type):
        self.count_calls.append(control_type)
        return len(self.candidates.get(control_type, []))

    def fetch_page(self, control_type, offset, limit):
        self.page_calls.append((control_type, offset, limit))
        if control_type in self.fail_phases:
            raise SyncError(SyncErrorKind.PAGE_FETCH, f"vista de {control_type.value} no disponible")
        return list(self.candidates.get(control_type, [])[offset:offset + limit])

    def fetch_base(self, entity_key):
        self.base_calls.append(entity_key)
        row = self.base.get(entity_key)
        return dict(row) if row is not None else None


class FakeRemote:
    """RemotePort que registra los envios y falla para las claves indicadas."""

    def __init__(self, fail_keys: Iterable[str] = (), key_field: str = "CODIGO"):
        self.fail_keys = set(fail_keys)
        self.key_field = key_field
        self.calls: List[Tuple[EntityKind, ControlType, dict]] = []
        self._lock = threading.Lock()

    def submit(self, entity_kind, control_type, payload, credentials):
        with self._lock:
            self.calls.append((entity_kind, control_type, dict(payload)))
        key = str(payload.get(self.key_field))
        if key in self.fail_keys:
            raise SyncError(SyncErrorKind.REMOTE_COMMUNICATION, f"HTTP 500 para {key}")
        return '{"status": "ok"}'


def make_definition(
    control_type: ControlType,
    entity_kind: EntityKind = EntityKind.COMPANY,
    *,
    required: Tuple[str, ...] = ("CODIGO",),
    date_fields: Tuple[str, ...] = ("DATA_VIGENCIA",),
) -> SourceDefinition:
    """Definicion de vista de prueba con clave CODIGO."""
    return SourceDefinition(
        entity_kind=entity_kind,
        control_type=control_type,
        view_name=f"VW_TESTE_{control_type.value}",
        key_column="CODIGO",
        required_fields=required,
        date_fields=date_fields,
    )


def make_items(count: int, prefix: str = "EMP", **extra) -> List[SourceRecord]:
    """Candidatos EMP001..EMPnnn con los campos minimos."""
    items = []
    for i in range(1, count + 1):
        key = f"{prefix}{i:03d}"
        fields = {"CODIGO": key, "NOME_FANTASIA": f"Empresa {i}"}
        fields.update(extra)
        items.append(SourceRecord(entity_key=key, fields=fields))
    return items


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def definition_factory() -> Callable[..., SourceDefinition]:
    return make_definition


@pytest.fixture
def items_factory() -> Callable[..., List[SourceRecord]]:
    return make_items


@pytest.fixture
def fake_source_factory() -> Callable[..., FakeSource]:
    return FakeSource


@pytest.fixture
def sqlite_engine():
    """
    Engine SQLite en memoria compartido entre hilos.
    Crea las tablas de control para cada test.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return build_session_factory(sqlite_engine)
