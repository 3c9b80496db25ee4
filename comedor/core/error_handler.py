"""
Manejo unificado de errores
Formato estándar de respuesta de error y manejadores registrados en la app.

Funciones principales:
- Formato de error uniforme {success, error_code, message, details}
- Mapeo de código de error a estado HTTP
- Registro de errores inesperados en logging y en la bitácora
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Formato estándar de respuesta de error"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.http_status,
            content=jsonable_encoder(self.to_dict())
        )


class ErrorHandler:
    """Manejador global de errores"""

    # Código de error -> estado HTTP
    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "INVALID_REFERENCE": 400,
        "AUTHENTICATION_REQUIRED": 401,
        "FORBIDDEN": 403,
        "NOT_FOUND": 404,
        "CONFLICT": 409,
        "DATABASE_ERROR": 500,
        "INTERNAL_ERROR": 500,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        if http_status >= 500:
            logger.error("%s: %s", error.error_code, error.message)
        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=http_status
        )

    # Estado HTTP de FastAPI -> código de error propio
    HTTP_STATUS_CODE_MAP = {
        401: "AUTHENTICATION_REQUIRED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
    }

    @classmethod
    def handle_http_exception(cls, error: HTTPException) -> ErrorResponse:
        code = cls.HTTP_STATUS_CODE_MAP.get(error.status_code, "HTTP_ERROR")
        return ErrorResponse(code, str(error.detail), {"status_code": error.status_code},
                             http_status=error.status_code)

    @classmethod
    def handle_validation_error(cls, error: Exception) -> ErrorResponse:
        """Errores de validación de pydantic sobre el cuerpo o los parámetros"""
        errors = error.errors() if hasattr(error, "errors") else str(error)
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="La solicitud no es válida",
            details={"validation_errors": errors},
            http_status=422
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception, db=None) -> ErrorResponse:
        error_details = {
            "type": type(error).__name__,
            "message": str(error),
            "traceback": traceback.format_exc()
        }
        logger.error("Error no controlado: %s", error, exc_info=error)
        cls._log_system_error(error_details, db)

        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="Error interno del sistema",
            details={"error_type": type(error).__name__},
            http_status=500
        )

    @classmethod
    def _log_system_error(cls, error_details: Dict[str, Any], db):
        """Registra el error en la bitácora; si falla, queda solo en logging"""
        if db is None:
            return
        try:
            with db.transaction() as conn:
                db.write_log(conn, "system_error", error_details)
        except Exception:
            logger.exception("No se pudo registrar el error en la bitácora")


def _request_db(request: Request):
    services = getattr(request.app.state, "services", None)
    return getattr(services, "db", None)


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_unknown_error(exc, _request_db(request)).to_json_response()


def create_success_response(data: Any = None, message: str = "Operación exitosa") -> Dict[str, Any]:
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = jsonable_encoder(data)

    return response
