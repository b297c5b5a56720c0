"""
Excepcion base del servicio de sincronizacion.

Todo error que cruza el borde HTTP o el CLI hereda de `AppException`: lleva
el status con el que se responde, un codigo estable y el mapa de contexto
(`details`) que acompana al error en logs, en el ledger y en la respuesta.
"""
from typing import Any, Dict, Optional


ErrorDetails = Dict[str, Any]


class AppException(Exception):
    """
    Error con status HTTP, codigo y contexto.

    Attributes:
        message: descripcion legible (se persiste en el ledger)
        status_code: status HTTP con el que responde la API
        error_code: codigo estable para clientes (para SyncError, su kind)
        details: contexto del fallo (entity_key, control_type, http_status, ...)
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[ErrorDetails] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details: ErrorDetails = dict(details) if details else {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Cuerpo JSON de la respuesta de error; los valores no serializables van como texto."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": {key: _jsonable(value) for key, value in self.details.items()},
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return str(value)
