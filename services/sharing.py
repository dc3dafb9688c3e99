"""Share-link lifecycle, view tracking and analytics for shared dashboards."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, distinct, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.dashboard_view import DashboardView
from models.shared_dashboard import SharedDashboard
from models.timestamps import as_utc, utc_now
from models.user import User
from services.errors import NotFoundError, ValidationFailedError, storage_operation
from services.share_token import generate_share_token

logger = logging.getLogger(__name__)


def _token_hint(token: str) -> str:
    return f"{token[:6]}..." if token else "<empty>"


def _clean(value: Optional[str]) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


def _grants_access(token: str, now: datetime):
    """SQL predicate: the token exists, is active and has not expired."""
    return (
        (SharedDashboard.share_token == token)
        & SharedDashboard.is_active.is_(True)
        & or_(SharedDashboard.expires_at.is_(None), SharedDashboard.expires_at > now)
    )


def serialize_shared_dashboard(row: SharedDashboard) -> Dict[str, Any]:
    return {
        "id": row.id,
        "share_token": row.share_token,
        "is_active": bool(row.is_active),
        "created_at": as_utc(row.created_at),
        "updated_at": as_utc(row.updated_at),
        "expires_at": as_utc(row.expires_at),
        "view_count": int(row.view_count or 0),
    }


@storage_operation
async def create_share_link(
    *,
    user_id: str,
    db: AsyncSession,
    expires_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> SharedDashboard:
    """Issue a new active link for ``user_id``, deactivating any previous one.

    Deactivation and insert share one transaction: if the insert fails the
    previous link stays active.
    """
    now = as_utc(now) or utc_now()
    expires_at = as_utc(expires_at)
    if expires_at is not None and expires_at <= now:
        raise ValidationFailedError("expires_at must be in the future.")

    try:
        owner_result = await db.execute(select(User.id).where(User.id == user_id).with_for_update())
        if owner_result.scalar_one_or_none() is None:
            raise NotFoundError("User not found.")

        await db.execute(
            update(SharedDashboard)
            .where(SharedDashboard.user_id == user_id, SharedDashboard.is_active.is_(True))
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )

        row = SharedDashboard(
            id=str(uuid.uuid4()),
            user_id=user_id,
            share_token=generate_share_token(),
            is_active=True,
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
            view_count=0,
        )
        db.add(row)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Issued share link %s for user %s", _token_hint(row.share_token), user_id)
    return row


@storage_operation
async def deactivate_share_link(*, user_id: str, db: AsyncSession) -> int:
    """Deactivate the owner's active link(s). Returns the number of rows changed."""
    result = await db.execute(
        update(SharedDashboard)
        .where(SharedDashboard.user_id == user_id, SharedDashboard.is_active.is_(True))
        .values(is_active=False, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    changed = int(result.rowcount or 0)
    if changed:
        logger.info("Deactivated %s share link(s) for user %s", changed, user_id)
    return changed


@storage_operation
async def get_current_share_token(*, user_id: str, db: AsyncSession) -> Optional[SharedDashboard]:
    result = await db.execute(
        select(SharedDashboard)
        .where(SharedDashboard.user_id == user_id, SharedDashboard.is_active.is_(True))
        .order_by(SharedDashboard.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


@storage_operation
async def list_shared_dashboards(*, user_id: str, db: AsyncSession) -> List[SharedDashboard]:
    result = await db.execute(
        select(SharedDashboard)
        .where(SharedDashboard.user_id == user_id)
        .order_by(SharedDashboard.created_at.desc())
    )
    return list(result.scalars().all())


@storage_operation
async def validate_share_token(
    *,
    share_token: str,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Return the owning user id when the token grants access, else ``None``."""
    token = str(share_token or "").strip()
    if not token:
        return None
    now = as_utc(now) or utc_now()
    result = await db.execute(select(SharedDashboard.user_id).where(_grants_access(token, now)))
    return result.scalar_one_or_none()


@storage_operation
async def track_dashboard_view(
    *,
    share_token: str,
    db: AsyncSession,
    viewer_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Count one visit and log it, or do nothing when the token grants no access.

    The validity check and the increment are one guarded UPDATE, and the
    view row is written in the same transaction.
    """
    token = str(share_token or "").strip()
    if not token:
        return False
    now = as_utc(now) or utc_now()

    try:
        result = await db.execute(
            update(SharedDashboard)
            .where(_grants_access(token, now))
            .values(view_count=SharedDashboard.view_count + 1)
            .returning(SharedDashboard.id)
            .execution_options(synchronize_session=False)
        )
        dashboard_id = result.scalar_one_or_none()
        if dashboard_id is None:
            await db.rollback()
            return False

        db.add(
            DashboardView(
                id=str(uuid.uuid4()),
                shared_dashboard_id=dashboard_id,
                viewer_ip=_clean(viewer_ip),
                viewer_user_agent=_clean(user_agent),
                referrer=_clean(referrer),
                viewed_at=now,
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return True


@storage_operation
async def get_dashboard_view_stats(
    *,
    user_id: str,
    share_token: str,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Aggregate views for the caller's own active link; ``None`` if it is not theirs."""
    token = str(share_token or "").strip()
    if not token:
        return None

    dashboard_result = await db.execute(
        select(SharedDashboard.id).where(
            SharedDashboard.share_token == token,
            SharedDashboard.user_id == user_id,
            SharedDashboard.is_active.is_(True),
        )
    )
    dashboard_id = dashboard_result.scalar_one_or_none()
    if dashboard_id is None:
        return None

    now = as_utc(now) or utc_now()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today_start - timedelta(days=7)
    month_start = today_start - timedelta(days=30)

    def _count_since(start: datetime):
        return func.coalesce(func.sum(case((DashboardView.viewed_at >= start, 1), else_=0)), 0)

    totals = (
        await db.execute(
            select(
                func.count(DashboardView.id),
                func.count(distinct(DashboardView.viewer_ip)),
                _count_since(today_start),
                _count_since(week_start),
                _count_since(month_start),
            ).where(DashboardView.shared_dashboard_id == dashboard_id)
        )
    ).one()

    recent_result = await db.execute(
        select(DashboardView.viewed_at)
        .where(DashboardView.shared_dashboard_id == dashboard_id)
        .order_by(DashboardView.viewed_at.desc())
        .limit(int(settings.STATS_RECENT_VIEWS_LIMIT))
    )

    return {
        "total_views": int(totals[0] or 0),
        "unique_ips": int(totals[1] or 0),
        "views_today": int(totals[2] or 0),
        "views_this_week": int(totals[3] or 0),
        "views_this_month": int(totals[4] or 0),
        "recent_views": [as_utc(value) for value in recent_result.scalars().all()],
    }
