"""
Aplicacion FastAPI del servicio de sincronizacion ERP -> OdontoPrev.

Solo expone el disparo manual de corridas, la consulta del ledger y un
health check; el trabajo periodico corre en scripts/run_sync.py --loop.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from odontoprev_sync.core.config import settings
from odontoprev_sync.core.events import startup_handler, shutdown_handler
from odontoprev_sync.api.v1.router import api_router
from odontoprev_sync.api.middlewares.error_handler import ErrorHandlerMiddleware
from odontoprev_sync.shared.exceptions.base import AppException


def create_application() -> FastAPI:
    """Construye la app con middleware de errores, eventos y rutas /api/v1."""
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Disparo y consulta de la sincronizacion ERP -> OdontoPrev",
    )

    application.add_middleware(ErrorHandlerMiddleware)

    application.add_event_handler("startup", startup_handler(application))
    application.add_event_handler("shutdown", shutdown_handler(application))

    application.include_router(api_router, prefix="/api")

    # SyncError incluido: el status sale de su kind
    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @application.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Estado del servicio y de la sincronizacion (contenedor listo o no)."""
        sync_ready = getattr(request.app.state, "sync_container", None) is not None
        return {
            "status": "healthy" if sync_ready else "degraded",
            "sync_ready": sync_ready,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
