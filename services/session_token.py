"""Signed session and email-confirmation tokens (HS256 JWTs)."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "portfolio_session"
CONFIRMATION_TOKEN_TYPE = "portfolio_email_confirmation"
CONFIRMATION_TTL_HOURS = 48


@dataclass
class SessionClaims:
    user_id: str
    email: Optional[str]
    name: Optional[str]
    expires_at: int


def _sign(subject: str, token_type: str, ttl_hours: int, extra: Dict[str, Any]) -> Dict[str, Any]:
    issued_at = datetime.now(timezone.utc)
    expires_at = int((issued_at + timedelta(hours=max(int(ttl_hours), 1))).timestamp())
    claims: Dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": expires_at,
    }
    claims.update({key: value for key, value in extra.items() if value})
    return {
        "token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": expires_at,
    }


def _verify(token: str, token_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid or expired token.") from exc

    if str(payload.get("type", "")).strip() != token_type:
        raise ValueError("Invalid token type.")
    if not str(payload.get("sub", "")).strip():
        raise ValueError("Token missing subject.")
    return payload


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> Dict[str, Any]:
    """Sign a session for ``user_id``; returns the token and its unix expiry."""
    ttl_hours = expires_hours or settings.JWT_EXPIRATION_HOURS or 24
    return _sign(user_id, SESSION_TOKEN_TYPE, ttl_hours, {"email": email, "name": name})


def decode_session_token(token: str) -> SessionClaims:
    """Verify signature, expiry and token type. Raises ``ValueError`` when unusable."""
    payload = _verify(token, SESSION_TOKEN_TYPE)
    return SessionClaims(
        user_id=str(payload["sub"]).strip(),
        email=payload.get("email") or None,
        name=payload.get("name") or None,
        expires_at=int(payload.get("exp", 0)),
    )


def create_confirmation_token(user_id: str) -> str:
    return _sign(user_id, CONFIRMATION_TOKEN_TYPE, CONFIRMATION_TTL_HOURS, {})["token"]


def decode_confirmation_token(token: str) -> str:
    """Return the user id an email-confirmation token was issued for."""
    return str(_verify(token, CONFIRMATION_TOKEN_TYPE)["sub"]).strip()
