"""
Excepciones de la aplicación
Cada clase fija su error_code; el manejador global traduce el código a estado HTTP.
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Excepción base de la aplicación"""

    default_code = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(BaseApplicationError):
    """La entidad referenciada no existe"""
    default_code = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """Violación de unicidad: fecha duplicada, reserva duplicada, opción repetida"""
    default_code = "CONFLICT"


class ValidationError(BaseApplicationError):
    """Violación de una regla de negocio"""
    default_code = "VALIDATION_ERROR"


class ForbiddenError(BaseApplicationError):
    """El solicitante no es dueño del recurso o está deshabilitado"""
    default_code = "FORBIDDEN"


class InvalidReferenceError(BaseApplicationError):
    """Clave foránea colgante al crear o actualizar"""
    default_code = "INVALID_REFERENCE"


class AuthenticationError(BaseApplicationError):
    """Token ausente o inválido"""
    default_code = "AUTHENTICATION_REQUIRED"


class DatabaseError(BaseApplicationError):
    """Fallo no recuperable del almacenamiento"""
    default_code = "DATABASE_ERROR"
