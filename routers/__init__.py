"""Routers package."""

from . import (
    health,
    auth,
    projects,
    share,
    shared,
)
