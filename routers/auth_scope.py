"""Authentication dependencies for owner-scoped routes."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.errors import NotAuthenticatedError
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve the owner from the Bearer session token or refuse with 401."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise NotAuthenticatedError("Please sign in to continue.")

    try:
        claims = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise NotAuthenticatedError(str(exc)) from exc

    return AuthContext(user_id=claims.user_id, email=claims.email, name=claims.name)
