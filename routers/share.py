"""
Router for the owner's share link: issue, deactivate, inspect and analytics.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.timestamps import utc_now
from routers.auth_scope import AuthContext, get_auth_context
from services.errors import NotFoundError, ServiceError, ValidationFailedError
from services.sharing import (
    create_share_link,
    deactivate_share_link,
    get_current_share_token,
    get_dashboard_view_stats,
    list_shared_dashboards,
    serialize_shared_dashboard,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateShareLinkRequest(BaseModel):
    expires_at: Optional[datetime] = None
    expires_in_hours: Optional[int] = Field(default=None, ge=1, le=settings.SHARE_LINK_MAX_HOURS)


class ShareLinkResponse(BaseModel):
    share_token: str
    share_url: str
    expires_at: Optional[datetime] = None


class CurrentShareResponse(BaseModel):
    share_token: Optional[str] = None
    share_url: Optional[str] = None
    view_count: int = 0
    expires_at: Optional[datetime] = None


class SharedDashboardResponse(BaseModel):
    id: str
    share_token: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    view_count: int = 0


class ViewStatsResponse(BaseModel):
    total_views: int
    unique_ips: int
    views_today: int
    views_this_week: int
    views_this_month: int
    recent_views: List[datetime]


def build_share_url(share_token: str) -> str:
    return f"{settings.PUBLIC_APP_URL.rstrip('/')}/shared/{share_token}"


@router.post("", response_model=ShareLinkResponse, status_code=201)
async def create_link(
    request: Optional[CreateShareLinkRequest] = None,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Issue a new share link; any previous link stops working."""
    request = request or CreateShareLinkRequest()
    if request.expires_at is not None and request.expires_in_hours is not None:
        raise ValidationFailedError("Provide either expires_at or expires_in_hours, not both.")

    expires_at = request.expires_at
    if request.expires_in_hours is not None:
        expires_at = utc_now() + timedelta(hours=request.expires_in_hours)

    try:
        row = await create_share_link(user_id=auth.user_id, db=db, expires_at=expires_at)
    except ServiceError:
        raise
    except Exception:
        logger.exception("Failed to create share link for user=%s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to create share link.")

    payload = serialize_shared_dashboard(row)
    return ShareLinkResponse(
        share_token=payload["share_token"],
        share_url=build_share_url(payload["share_token"]),
        expires_at=payload["expires_at"],
    )


@router.delete("", status_code=204)
async def deactivate_link(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Stop sharing. Calling this with nothing shared is a no-op."""
    await deactivate_share_link(user_id=auth.user_id, db=db)
    return Response(status_code=204)


@router.get("/current", response_model=CurrentShareResponse)
async def current_link(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """The owner's active token with its view count, or an empty payload."""
    row = await get_current_share_token(user_id=auth.user_id, db=db)
    if row is None:
        return CurrentShareResponse()
    payload = serialize_shared_dashboard(row)
    return CurrentShareResponse(
        share_token=payload["share_token"],
        share_url=build_share_url(payload["share_token"]),
        view_count=payload["view_count"],
        expires_at=payload["expires_at"],
    )


@router.get("/history", response_model=List[SharedDashboardResponse])
async def link_history(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_shared_dashboards(user_id=auth.user_id, db=db)
    return [serialize_shared_dashboard(row) for row in rows]


@router.get("/stats/{share_token}", response_model=ViewStatsResponse)
async def link_stats(
    share_token: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """View analytics for the caller's own active link."""
    stats = await get_dashboard_view_stats(user_id=auth.user_id, share_token=share_token, db=db)
    if stats is None:
        raise NotFoundError("No statistics found for this dashboard.")
    return stats
