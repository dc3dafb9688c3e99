"""
Public, unauthenticated routes for holders of a share token.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.errors import INVALID_LINK_MESSAGE, NotFoundError, StorageUnavailableError
from services.public_projects import is_valid_share_token, list_shared_projects
from services.sharing import track_dashboard_view

router = APIRouter()
logger = logging.getLogger(__name__)


class TrackViewRequest(BaseModel):
    viewer_ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class PublicProject(BaseModel):
    id: str
    name: str
    client: str
    project_url: str
    created_at: Optional[datetime] = None


class PublicProfile(BaseModel):
    display_name: str


class SharedPortfolioResponse(BaseModel):
    profile: PublicProfile
    projects: List[PublicProject]


def _client_identifier(request: Request) -> Optional[str]:
    """Original client address; behind a proxy the peer is the proxy itself."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return None


@router.get("/{share_token}", response_model=SharedPortfolioResponse)
async def open_shared_dashboard(
    share_token: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Read-only portfolio behind a share link; each successful open counts as a view."""
    portfolio = await list_shared_projects(share_token=share_token, db=db)
    if portfolio is None:
        raise NotFoundError(INVALID_LINK_MESSAGE)

    try:
        await track_dashboard_view(
            share_token=share_token,
            db=db,
            viewer_ip=_client_identifier(request),
            user_agent=request.headers.get("user-agent"),
            referrer=request.headers.get("referer"),
        )
    except StorageUnavailableError as exc:
        logger.warning("View tracking failed for shared dashboard %s...: %s", share_token[:6], exc)

    return portfolio


@router.get("/{share_token}/valid")
async def check_shared_dashboard(share_token: str, db: AsyncSession = Depends(get_db)):
    return {"valid": await is_valid_share_token(share_token=share_token, db=db)}


@router.post("/{share_token}/views")
async def record_view(
    share_token: str,
    request: Optional[TrackViewRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Count a visit. Answers only whether it was counted."""
    request = request or TrackViewRequest()
    tracked = await track_dashboard_view(
        share_token=share_token,
        db=db,
        viewer_ip=request.viewer_ip,
        user_agent=request.user_agent,
        referrer=request.referrer,
    )
    return {"tracked": tracked}
