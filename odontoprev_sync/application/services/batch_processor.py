"""
Procesamiento paginado de candidatos.

Recorre las paginas 0..n pidiendo `fetch_page(offset, limit)` hasta recibir
una pagina vacia. Cada item se procesa con `handle(item)`:

- si `handle` retorna, el item cuenta como exitoso;
- si lanza, el item cuenta como fallido y se continua con el siguiente.

Un fallo al leer una pagina detiene el lote (se propaga como PAGE_FETCH).

Con `max_workers > 1` los items de cada pagina se procesan en un
ThreadPoolExecutor acotado; las paginas siguen siendo secuenciales.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Generic, List, Sequence, Tuple, TypeVar

from loguru import logger

from odontoprev_sync.domain.entities import BatchResult
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


T = TypeVar("T")

FetchPage = Callable[[int, int], Sequence[T]]
ItemHandler = Callable[[T], object]
Describe = Callable[[T], str]


def _describe_default(item: object) -> str:
    key = getattr(item, "entity_key", None)
    return str(key) if key is not None else repr(item)


class PaginatedBatchProcessor(Generic[T]):
    """Procesa conjuntos grandes de items pagina a pagina con memoria acotada."""

    def __init__(
        self,
        *,
        max_workers: int = 1,
        name: str = "lote",
        describe: Describe = _describe_default,
    ) -> None:
        self._max_workers = max(1, int(max_workers))
        self._name = name
        self._describe = describe

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def process(self, page_size: int, fetch_page: FetchPage, handle: ItemHandler) -> BatchResult:
        """
        Procesa todas las paginas.

        Raises:
            SyncError(CONFIGURATION): si page_size < 1
            SyncError(PAGE_FETCH): si falla la lectura de una pagina
        """
        if page_size < 1:
            raise SyncError(
                SyncErrorKind.CONFIGURATION,
                f"Tamano de pagina invalido: {page_size}",
                details={"page_size": page_size},
            )

        attempted = succeeded = failed = 0
        page_number = 0
        while True:
            offset = page_number * page_size
            page = self._fetch(fetch_page, offset, page_size)
            if not page:
                break

            ok, ko = self._process_page(page, handle)
            attempted += len(page)
            succeeded += ok
            failed += ko
            logger.info(
                f"[{self._name}] Pagina {page_number + 1} (offset {offset}): "
                f"{ok} exitosos, {ko} fallidos"
            )
            page_number += 1

        result = BatchResult(attempted=attempted, succeeded=succeeded, failed=failed, pages=page_number)
        logger.info(
            f"[{self._name}] Finalizado: {attempted} procesados, {succeeded} exitosos, "
            f"{failed} fallidos en {page_number} paginas"
        )
        return result

    def _fetch(self, fetch_page: FetchPage, offset: int, limit: int) -> List[T]:
        try:
            return list(fetch_page(offset, limit))
        except Exception as exc:
            raise SyncError.wrap(SyncErrorKind.PAGE_FETCH, exc, offset=offset, limit=limit) from exc

    def _process_page(self, page: Sequence[T], handle: ItemHandler) -> Tuple[int, int]:
        if self._max_workers == 1 or len(page) == 1:
            outcomes = [self._run_one(handle, item) for item in page]
        else:
            workers = min(self._max_workers, len(page))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"{self._name}-") as executor:
                outcomes = list(executor.map(lambda item: self._run_one(handle, item), page))
        ok = sum(1 for outcome in outcomes if outcome)
        return ok, len(outcomes) - ok

    def _run_one(self, handle: ItemHandler, item: T) -> bool:
        try:
            handle(item)
            return True
        except Exception as exc:
            logger.warning(f"[{self._name}] Item {self._describe(item)} fallo: {exc}")
            return False
