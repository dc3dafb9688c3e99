"""Sign-up, sign-in and current-user lookup."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.profile import Profile
from models.timestamps import utc_now
from models.user import User
from services.errors import NotAuthenticatedError, NotFoundError, ValidationFailedError, storage_operation
from services.passwords import hash_password, verify_password
from services.session_token import create_confirmation_token, decode_confirmation_token

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DUPLICATE_EMAIL_MESSAGE = "Email already registered."
UNCONFIRMED_MESSAGE = (
    "Please confirm your email address before signing in. Check your inbox for a confirmation link."
)


def _normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


async def _email_taken(email: str, db: AsyncSession) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.scalar_one_or_none() is not None


async def _load_profile(user_id: str, db: AsyncSession) -> Optional[Profile]:
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    return result.scalar_one_or_none()


def describe_user(user: User, profile: Optional[Profile]) -> Dict[str, Any]:
    return {
        "user_id": user.id,
        "email": user.email,
        "name": (profile.display_name if profile else None) or user.email,
        "email_confirmed": user.email_confirmed_at is not None,
    }


@storage_operation
async def sign_up(*, email: str, password: str, display_name: str, db: AsyncSession) -> Dict[str, Any]:
    """Create an account and its profile.

    Returns the account description plus ``needs_email_confirmation``.
    """
    email = _normalize_email(email)
    display_name = str(display_name or "").strip()
    if "@" not in email:
        raise ValidationFailedError("A valid email address is required.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if not display_name:
        raise ValidationFailedError("A display name is required.")

    if await _email_taken(email, db):
        raise ValidationFailedError(DUPLICATE_EMAIL_MESSAGE)

    user = User(
        id=str(uuid.uuid4()),
        email=email,
        password_hash=hash_password(password),
        email_confirmed_at=None if settings.REQUIRE_EMAIL_CONFIRMATION else utc_now(),
    )
    profile = Profile(id=str(uuid.uuid4()), user_id=user.id, display_name=display_name, email=email)
    db.add_all([user, profile])
    try:
        await db.commit()
    except IntegrityError as exc:
        # A concurrent sign-up with the same email won the unique index.
        await db.rollback()
        raise ValidationFailedError(DUPLICATE_EMAIL_MESSAGE) from exc
    logger.info("Registered user %s", user.id)

    payload = describe_user(user, profile)
    payload["needs_email_confirmation"] = user.email_confirmed_at is None
    if payload["needs_email_confirmation"]:
        send_confirmation(user)
    return payload


def send_confirmation(user: User) -> None:
    """Hand a confirmation link to the mail integration.

    The token is a bearer credential: it never appears in a service result
    and only its prefix is logged.
    """
    token = create_confirmation_token(user.id)
    logger.info(
        "Confirmation link for user %s: %s/confirm?token=%s...",
        user.id,
        settings.PUBLIC_APP_URL.rstrip("/"),
        token[:6],
    )


@storage_operation
async def confirm_email(*, confirmation_token: str, db: AsyncSession) -> Dict[str, Any]:
    try:
        user_id = decode_confirmation_token(confirmation_token)
    except ValueError as exc:
        raise ValidationFailedError("This confirmation link is invalid or expired.") from exc

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found.")
    if user.email_confirmed_at is None:
        user.email_confirmed_at = utc_now()
        await db.commit()
    return describe_user(user, await _load_profile(user.id, db))


@storage_operation
async def sign_in(*, email: str, password: str, db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(select(User).where(User.email == _normalize_email(email)))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password or "", user.password_hash):
        raise NotAuthenticatedError("Invalid email or password.")
    if user.email_confirmed_at is None:
        raise NotAuthenticatedError(UNCONFIRMED_MESSAGE)
    return describe_user(user, await _load_profile(user.id, db))


@storage_operation
async def get_current_user(*, user_id: str, db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotAuthenticatedError("Session user no longer exists.")
    return describe_user(user, await _load_profile(user.id, db))
