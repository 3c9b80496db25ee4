"""
Verificación de tokens JWT emitidos por el proveedor de identidad externo

La app no emite tokens: solo valida firma, expiración y audiencia, y exige un
rol de administrador para las rutas de gestión.
"""

import logging
from typing import Any, Dict, List, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, settings as default_settings
from .exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class SecurityManager:
    """Validación de tokens y roles"""

    def __init__(self, settings: Settings = default_settings):
        self.secret = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.audience = settings.jwt_audience or None
        self.admin_roles = [r.upper() for r in settings.admin_roles]

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("El token ha expirado")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Token inválido: {e}")

    @staticmethod
    def roles_from_claims(claims: Dict[str, Any]) -> List[str]:
        roles = []
        app_metadata = claims.get("app_metadata") or {}
        for value in (app_metadata.get("role"), app_metadata.get("roles"), claims.get("user_role")):
            if isinstance(value, str):
                roles.append(value)
            elif isinstance(value, list):
                roles.extend(str(v) for v in value)
        return [r.upper() for r in roles]

    def require_admin(self, claims: Dict[str, Any]) -> Dict[str, Any]:
        if not set(self.roles_from_claims(claims)) & set(self.admin_roles):
            raise ForbiddenError("Se requiere rol de administrador")
        return claims


def _security_manager(request: Request) -> SecurityManager:
    manager: Optional[SecurityManager] = getattr(request.app.state, "security", None)
    return manager or SecurityManager()


async def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Dict[str, Any]:
    """Extrae y valida el token Bearer"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Falta el token de autorización")
    return _security_manager(request).decode_jwt_token(credentials.credentials)


async def require_admin(
    request: Request,
    claims: Dict[str, Any] = Depends(get_current_claims)
) -> Dict[str, Any]:
    """Dependencia para rutas administrativas"""
    return _security_manager(request).require_admin(claims)


def actor_from_claims(claims: Optional[Dict[str, Any]]) -> Optional[str]:
    if not claims:
        return None
    return claims.get("email") or claims.get("sub")
