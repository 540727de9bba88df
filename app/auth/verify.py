"""
verify.py
---------
Purpose:
    JWT verification using Supabase JWKS (ES256/RS256).

Notes:
    - Fetches JWKS from Supabase and caches keys.
    - `auth_dependency` resolves the caller's claims or None. Rejection
      happens in the service layer, after request validation, so callers
      see validation errors before authentication errors.
"""

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.errors import UnauthorizedError

logger = get_logger(__name__)

_jwk_client = PyJWKClient(settings.jwks_url())
_security = HTTPBearer(auto_error=False)


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256", "RS256"],
            audience=settings.SUPABASE_JWT_AUDIENCE,
            options={"verify_exp": True},
        )
    except jwt.PyJWTError as e:
        raise UnauthorizedError(f"Invalid authentication token: {e}") from e


def auth_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> dict | None:
    if credentials is None:
        return None

    try:
        return verify_jwt(credentials.credentials)
    except UnauthorizedError as e:
        logger.warning("Rejected bearer token", error=str(e))
        return None


def require_user_id(claims: dict | None) -> str:
    """Return the caller's user id or raise UnauthorizedError."""
    user_id = (claims or {}).get("sub")
    if not user_id:
        raise UnauthorizedError("Unauthorized: No user session")
    return user_id
