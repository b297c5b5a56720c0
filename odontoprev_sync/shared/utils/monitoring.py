"""
Envoltorios de observabilidad para operaciones de la sincronizacion.

`with_logging` y `with_timing` son funciones de orden superior: se aplican
explicitamente sobre cada operacion (como decorador o envolviendo una
funcion) y emiten lineas de inicio, exito y error con la duracion.

Uso:
    @with_logging("SINCRONIZACION_FASE", include_params=("control_type",))
    def run_phase(self, control_type): ...

    fetch = with_timing("LECTURA_PAGINA")(source.fetch_page)
"""
import functools
import inspect
import time
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

from loguru import logger

from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


F = TypeVar("F", bound=Callable[..., Any])


def _capture_params(func: Callable[..., Any], names: Iterable[str], args: tuple, kwargs: dict) -> Dict[str, Any]:
    """Extrae los parametros nombrados de una llamada (ignora los que no existan)."""
    wanted = tuple(names)
    if not wanted:
        return {}
    try:
        bound = inspect.signature(func).bind_partial(*args, **kwargs)
    except TypeError:
        return {}
    captured: Dict[str, Any] = {}
    for name in wanted:
        if name in bound.arguments:
            value = bound.arguments[name]
            captured[name] = getattr(value, "value", value)
    return captured


def _format_params(params: Dict[str, Any]) -> str:
    if not params:
        return ""
    return " [" + ", ".join(f"{k}={v}" for k, v in params.items()) + "]"


def with_logging(
    operation: str,
    *,
    include_params: Iterable[str] = (),
    convert_to: Optional[SyncErrorKind] = None,
    level: str = "INFO",
) -> Callable[[F], F]:
    """
    Envuelve una operacion con logs de inicio, exito y error.

    Args:
        operation: nombre de la operacion para los logs
        include_params: nombres de parametros a incluir en los logs
        convert_to: si se indica, las excepciones que no son SyncError se
            convierten a SyncError de ese tipo
        level: nivel de log para inicio y exito
    """
    params_to_capture = tuple(include_params)

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            params = _capture_params(func, params_to_capture, args, kwargs)
            suffix = _format_params(params)
            logger.log(level, f"[{operation}] Iniciando{suffix}")
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.error(f"[{operation}] Error tras {elapsed_ms:.0f} ms{suffix}: {exc}")
                if convert_to is not None and not isinstance(exc, SyncError):
                    raise SyncError.wrap(convert_to, exc, operation=operation, **params) from exc
                raise
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.log(level, f"[{operation}] Completado en {elapsed_ms:.0f} ms{suffix}")
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def with_timing(operation: str, *, slow_threshold_ms: Optional[float] = None) -> Callable[[F], F]:
    """
    Mide la duracion de una operacion y la registra en DEBUG.

    Si se indica `slow_threshold_ms`, las ejecuciones mas lentas se
    registran como WARNING.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - started) * 1000
                if slow_threshold_ms is not None and elapsed_ms > slow_threshold_ms:
                    logger.warning(f"[{operation}] Lento: {elapsed_ms:.0f} ms (umbral {slow_threshold_ms:.0f} ms)")
                else:
                    logger.debug(f"[{operation}] {elapsed_ms:.1f} ms")

        return wrapper  # type: ignore[return-value]

    return decorator
