"""Async client for the Portfolio Dashboard API."""

from .results import ClientError, ServiceResult
from .client import PortfolioClient
from .session import AuthSession, AuthUser
