"""Row builders shared by the test modules."""

import uuid

from models.profile import Profile
from models.timestamps import utc_now
from models.user import User
from services.passwords import hash_password
from services.session_token import create_session_token


OWNER_PASSWORD = "correct-horse-battery"


async def create_owner(session_maker, user_id=None, email=None, display_name="Owner"):
    """Insert a confirmed user with a profile and return its id."""
    user_id = user_id or f"user-{uuid.uuid4().hex[:8]}"
    email = email or f"{user_id}@example.com"
    async with session_maker() as session:
        session.add(
            User(
                id=user_id,
                email=email,
                password_hash=hash_password(OWNER_PASSWORD),
                email_confirmed_at=utc_now(),
            )
        )
        session.add(Profile(user_id=user_id, display_name=display_name, email=email))
        await session.commit()
    return user_id


def auth_header(user_id, email=None):
    token = create_session_token(user_id, email or f"{user_id}@example.com")["token"]
    return {"Authorization": f"Bearer {token}"}
