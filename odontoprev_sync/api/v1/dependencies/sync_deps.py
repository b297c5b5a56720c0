"""
Dependencias para inyeccion del contenedor de sincronizacion.
"""
from fastapi import HTTPException, Request, status

from odontoprev_sync.infrastructure.container import SyncContainer


def get_sync_container(request: Request) -> SyncContainer:
    """
    Dependencia para obtener el contenedor creado en el startup.

    Returns:
        SyncContainer: colaboradores de la sincronizacion
    """
    container = getattr(request.app.state, "sync_container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sincronizacion no inicializada",
        )
    return container
