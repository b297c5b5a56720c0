"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from typing import Callable

from fastapi import FastAPI
from loguru import logger

from odontoprev_sync.core.config import settings
from odontoprev_sync.infrastructure.container import build_from_settings
from odontoprev_sync.infrastructure.database.session import close_db, init_db


_file_sink_id = None


def configure_logging() -> None:
    """
    Agrega el sink de archivo con rotacion y retencion.

    Idempotente: llamadas repetidas no duplican el sink.
    """
    global _file_sink_id
    if _file_sink_id is not None or not settings.LOG_FILE:
        return
    _file_sink_id = logger.add(
        settings.LOG_FILE,
        rotation="500 MB",
        retention="10 days",
        level=settings.LOG_LEVEL,
        enqueue=True,
    )


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            configure_logging()

            # Validar configuracion critica
            _validate_config()

            # Crea las tablas de control si no existen
            init_db()
            logger.info("Base de datos inicializada")

            app.state.sync_container = build_from_settings(settings)
            logger.success("Aplicacion iniciada correctamente")

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not settings.ODONTOPREV_APP_TOKEN:
        warnings.append("ODONTOPREV_APP_TOKEN no configurado - la autenticacion fallara")
    if not settings.ODONTOPREV_LOGIN_USER or not settings.ODONTOPREV_LOGIN_PASSWORD:
        warnings.append("Credenciales de login de empresa incompletas")
    if settings.SYNC_MAX_WORKERS > 1 and "sqlite" in settings.effective_database_url:
        warnings.append("SYNC_MAX_WORKERS > 1 con SQLite: las escrituras se serializan")

    # Valida el orden de fases (lanza SyncError si es invalido)
    settings.phase_orders()

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")

        container = getattr(app.state, "sync_container", None)
        if container is not None:
            container.close()
            logger.info("Clientes de OdontoPrev cerrados")

        close_db()
        logger.info("Conexiones de base de datos cerradas")

        logger.success("Aplicacion cerrada correctamente")

    return shutdown
