"""
Gestión de sesiones de base de datos.
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from odontoprev_sync.core.config import settings


# Base para modelos de SQLAlchemy
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _create_engine_args(url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones, SQLite no lo soporta.
    """
    args = {
        "echo": settings.DEBUG,
        "future": True,
    }

    # Configuracion de pool solo para PostgreSQL
    if "postgresql" in url:
        args.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,  # Verifica conexion antes de usar
        })

    return args


def get_engine() -> Engine:
    """Engine de base de datos (se crea en el primer uso)."""
    global _engine
    if _engine is None:
        url = settings.effective_database_url
        _engine = create_engine(url, **_create_engine_args(url))
    return _engine


def get_session_factory() -> sessionmaker:
    """Session factory ligada al engine global."""
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    Sesion transaccional: commit al salir, rollback ante error.

    Yields:
        Session: Sesión de base de datos
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """Inicializa la base de datos creando las tablas de control."""
    # Registrar modelos con Base antes de crear tablas
    from odontoprev_sync.infrastructure.database import models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
