"""Share token generation."""

import secrets

from config import settings

MIN_TOKEN_BYTES = 32


def generate_share_token() -> str:
    """Return an opaque URL-safe token carrying at least 256 random bits.

    ``secrets.token_urlsafe`` yields unpadded base64url, so the token never
    contains ``+``, ``/`` or ``=``.
    """
    nbytes = max(int(settings.SHARE_TOKEN_BYTES), MIN_TOKEN_BYTES)
    return secrets.token_urlsafe(nbytes)
