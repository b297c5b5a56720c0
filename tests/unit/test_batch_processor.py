"""
Tests unitarios para PaginatedBatchProcessor.

Verifica:
- contadores attempted/succeeded/failed por lote
- aislamiento de fallos por item
- fallo de lectura de pagina como PAGE_FETCH
- procesamiento con varios workers
"""
from __future__ import annotations

import threading
from typing import List

import pytest

from odontoprev_sync.application.services.batch_processor import PaginatedBatchProcessor
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


def _pager(items: List[int], calls: List[tuple]):
    def fetch_page(offset: int, limit: int):
        calls.append((offset, limit))
        return items[offset:offset + limit]

    return fetch_page


class TestPaginatedBatchProcessor:
    """Tests para PaginatedBatchProcessor.process()."""

    def test_counts_with_one_failing_item(self) -> None:
        """120 items, paginas de 50 y el item 75 fallando: 120 intentados, 119 ok, 1 fallido."""
        items = list(range(1, 121))
        calls: List[tuple] = []

        def handle(item: int) -> None:
            if item == 75:
                raise RuntimeError("falla del item 75")

        result = PaginatedBatchProcessor().process(50, _pager(items, calls), handle)

        assert result.attempted == 120
        assert result.succeeded == 119
        assert result.failed == 1
        assert result.pages == 3
        assert calls == [(0, 50), (50, 50), (100, 50), (150, 50)]

    def test_every_item_is_visited_once(self) -> None:
        items = list(range(37))
        seen: List[int] = []

        PaginatedBatchProcessor().process(10, _pager(items, []), seen.append)

        assert seen == items

    def test_empty_source(self) -> None:
        result = PaginatedBatchProcessor().process(50, lambda offset, limit: [], lambda item: None)

        assert result.to_dict() == {"attempted": 0, "succeeded": 0, "failed": 0, "pages": 0}

    @pytest.mark.parametrize("page_size", [0, -5])
    def test_invalid_page_size_is_configuration_error(self, page_size: int) -> None:
        with pytest.raises(SyncError) as exc_info:
            PaginatedBatchProcessor().process(page_size, lambda o, l: [], lambda item: None)

        assert exc_info.value.kind is SyncErrorKind.CONFIGURATION

    def test_page_fetch_error_stops_batch(self) -> None:
        """Una pagina ilegible detiene el lote como PAGE_FETCH con offset en detalles."""
        handled: List[int] = []

        def fetch_page(offset: int, limit: int):
            if offset >= 20:
                raise ConnectionError("vista no disponible")
            return list(range(offset, offset + limit))

        with pytest.raises(SyncError) as exc_info:
            PaginatedBatchProcessor().process(10, fetch_page, handled.append)

        assert exc_info.value.kind is SyncErrorKind.PAGE_FETCH
        assert exc_info.value.details["offset"] == 20
        assert len(handled) == 20

    def test_page_fetch_sync_error_keeps_kind(self) -> None:
        def fetch_page(offset: int, limit: int):
            raise SyncError(SyncErrorKind.PAGE_FETCH, "timeout de la vista")

        with pytest.raises(SyncError) as exc_info:
            PaginatedBatchProcessor().process(10, fetch_page, lambda item: None)

        assert exc_info.value.message == "timeout de la vista"
        assert exc_info.value.details["limit"] == 10


class TestPaginatedBatchProcessorWorkers:
    """Tests con max_workers > 1."""

    def test_parallel_counts_match_sequential(self) -> None:
        items = list(range(1, 121))
        threads = set()
        lock = threading.Lock()

        def handle(item: int) -> None:
            with lock:
                threads.add(threading.current_thread().name)
            if item % 40 == 0:
                raise ValueError(f"falla {item}")

        processor = PaginatedBatchProcessor(max_workers=4, name="test")
        result = processor.process(50, _pager(items, []), handle)

        assert result.attempted == 120
        assert result.succeeded == 117
        assert result.failed == 3
        assert all(name.startswith("test-") for name in threads)

    def test_workers_floor_is_one(self) -> None:
        assert PaginatedBatchProcessor(max_workers=0).max_workers == 1
