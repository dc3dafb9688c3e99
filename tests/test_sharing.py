import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

import services.sharing as sharing
from models.dashboard_view import DashboardView
from models.shared_dashboard import SharedDashboard
from services.errors import NotFoundError, StorageUnavailableError, ValidationFailedError
from services.sharing import (
    create_share_link,
    deactivate_share_link,
    get_current_share_token,
    get_dashboard_view_stats,
    list_shared_dashboards,
    track_dashboard_view,
    validate_share_token,
)
from tests.factories import create_owner


NOW = datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)


async def _count(session_maker, column):
    async with session_maker() as session:
        return (await session.execute(select(func.count(column)))).scalar_one()


async def _issue(session_maker, user_id, **kwargs):
    async with session_maker() as session:
        return await create_share_link(user_id=user_id, db=session, **kwargs)


async def _dashboard(session_maker, token):
    async with session_maker() as session:
        result = await session.execute(select(SharedDashboard).where(SharedDashboard.share_token == token))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_create_share_link_leaves_exactly_one_active_record(session_maker):
    owner = await create_owner(session_maker)

    first = await _issue(session_maker, owner)
    second = await _issue(session_maker, owner)

    assert first.share_token != second.share_token
    async with session_maker() as session:
        rows = await list_shared_dashboards(user_id=owner, db=session)
        current = await get_current_share_token(user_id=owner, db=session)

    assert [row.share_token for row in rows if row.is_active] == [second.share_token]
    assert len(rows) == 2
    assert current.share_token == second.share_token
    assert current.view_count == 0


@pytest.mark.asyncio
async def test_reissue_revokes_previous_token(session_maker):
    owner = await create_owner(session_maker)
    old = await _issue(session_maker, owner)
    new = await _issue(session_maker, owner)

    async with session_maker() as session:
        assert await validate_share_token(share_token=old.share_token, db=session) is None
        assert await validate_share_token(share_token=new.share_token, db=session) == owner


@pytest.mark.asyncio
async def test_create_share_link_for_unknown_user_is_not_found(session_maker):
    with pytest.raises(NotFoundError):
        await _issue(session_maker, "missing-user")
    assert await _count(session_maker, SharedDashboard.id) == 0


@pytest.mark.asyncio
async def test_create_share_link_rejects_past_expiry(session_maker):
    owner = await create_owner(session_maker)
    with pytest.raises(ValidationFailedError):
        await _issue(session_maker, owner, expires_at=NOW - timedelta(minutes=1), now=NOW)
    assert await _count(session_maker, SharedDashboard.id) == 0


@pytest.mark.asyncio
async def test_failed_reissue_keeps_previous_link_active(session_maker, monkeypatch):
    owner = await create_owner(session_maker)
    monkeypatch.setattr(sharing, "generate_share_token", lambda: "duplicate-token-value")
    await _issue(session_maker, owner)

    with pytest.raises(StorageUnavailableError):
        await _issue(session_maker, owner)

    row = await _dashboard(session_maker, "duplicate-token-value")
    assert row.is_active is True
    assert await _count(session_maker, SharedDashboard.id) == 1


@pytest.mark.asyncio
async def test_deactivate_is_idempotent(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner)

    async with session_maker() as session:
        assert await deactivate_share_link(user_id=owner, db=session) == 1
    async with session_maker() as session:
        assert await deactivate_share_link(user_id=owner, db=session) == 0
        assert await get_current_share_token(user_id=owner, db=session) is None
        assert await validate_share_token(share_token=link.share_token, db=session) is None

    # Records are never deleted.
    assert await _count(session_maker, SharedDashboard.id) == 1


@pytest.mark.asyncio
async def test_deactivate_without_any_link_is_a_no_op(session_maker):
    owner = await create_owner(session_maker)
    async with session_maker() as session:
        assert await deactivate_share_link(user_id=owner, db=session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["", "   ", "not-a-real-token"])
async def test_unknown_token_is_rejected_without_writes(session_maker, token):
    owner = await create_owner(session_maker)
    await _issue(session_maker, owner)

    async with session_maker() as session:
        assert await validate_share_token(share_token=token, db=session) is None
        assert await track_dashboard_view(share_token=token, db=session, viewer_ip="1.2.3.4") is False

    assert await _count(session_maker, DashboardView.id) == 0


@pytest.mark.asyncio
async def test_expired_link_behaves_as_inactive(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner, expires_at=NOW + timedelta(hours=1), now=NOW)
    later = NOW + timedelta(hours=2)

    async with session_maker() as session:
        assert await validate_share_token(share_token=link.share_token, db=session, now=NOW) == owner
        assert await validate_share_token(share_token=link.share_token, db=session, now=later) is None
        assert await track_dashboard_view(share_token=link.share_token, db=session, now=later) is False

    row = await _dashboard(session_maker, link.share_token)
    assert row.view_count == 0


@pytest.mark.asyncio
async def test_track_view_stores_metadata_and_increments(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner)

    async with session_maker() as session:
        tracked = await track_dashboard_view(
            share_token=link.share_token,
            db=session,
            viewer_ip="203.0.113.9",
            user_agent="Mozilla/5.0",
            referrer="",
        )
    assert tracked is True

    async with session_maker() as session:
        view = (await session.execute(select(DashboardView))).scalar_one()
    assert view.viewer_ip == "203.0.113.9"
    assert view.viewer_user_agent == "Mozilla/5.0"
    assert view.referrer is None
    assert view.country is None and view.city is None
    assert (await _dashboard(session_maker, link.share_token)).view_count == 1


@pytest.mark.asyncio
async def test_concurrent_views_are_all_counted(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner)
    visits = 10

    async def visit(index):
        async with session_maker() as session:
            return await track_dashboard_view(
                share_token=link.share_token,
                db=session,
                viewer_ip=f"10.0.0.{index}",
            )

    results = await asyncio.gather(*(visit(index) for index in range(visits)))

    assert all(results)
    assert (await _dashboard(session_maker, link.share_token)).view_count == visits
    assert await _count(session_maker, DashboardView.id) == visits


@pytest.mark.asyncio
async def test_view_stats_windows(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner, now=datetime(2025, 12, 1, tzinfo=timezone.utc))

    visits = [
        (datetime(2026, 3, 15, 0, 30, tzinfo=timezone.utc), "10.0.0.1"),
        (datetime(2026, 3, 14, 23, 0, tzinfo=timezone.utc), "10.0.0.1"),
        (datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc), "10.0.0.2"),
        (datetime(2026, 2, 20, 12, 0, tzinfo=timezone.utc), None),
        (datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc), "10.0.0.3"),
    ]
    for viewed_at, ip in visits:
        async with session_maker() as session:
            assert await track_dashboard_view(share_token=link.share_token, db=session, viewer_ip=ip, now=viewed_at)

    async with session_maker() as session:
        stats = await get_dashboard_view_stats(user_id=owner, share_token=link.share_token, db=session, now=NOW)

    assert stats["total_views"] == 5
    assert stats["unique_ips"] == 3
    assert stats["views_today"] == 1
    assert stats["views_this_week"] == 3
    assert stats["views_this_month"] == 4
    assert stats["recent_views"] == [viewed_at for viewed_at, _ in visits]


@pytest.mark.asyncio
async def test_view_stats_recent_views_are_capped_and_descending(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner, now=NOW - timedelta(days=1))

    for minute in range(12):
        async with session_maker() as session:
            await track_dashboard_view(
                share_token=link.share_token,
                db=session,
                now=NOW - timedelta(minutes=minute * 5),
            )

    async with session_maker() as session:
        stats = await get_dashboard_view_stats(user_id=owner, share_token=link.share_token, db=session, now=NOW)

    recent = stats["recent_views"]
    assert stats["total_views"] == 12
    assert stats["unique_ips"] == 0
    assert len(recent) == 10
    assert recent == sorted(recent, reverse=True)
    assert recent[0] == NOW


@pytest.mark.asyncio
async def test_view_stats_are_private_to_the_owner(session_maker):
    owner = await create_owner(session_maker)
    stranger = await create_owner(session_maker)
    link = await _issue(session_maker, owner)

    async with session_maker() as session:
        assert await get_dashboard_view_stats(user_id=stranger, share_token=link.share_token, db=session) is None
        assert await get_dashboard_view_stats(user_id=owner, share_token="", db=session) is None


@pytest.mark.asyncio
async def test_view_stats_for_empty_link_are_zero(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner)

    async with session_maker() as session:
        stats = await get_dashboard_view_stats(user_id=owner, share_token=link.share_token, db=session)

    assert stats == {
        "total_views": 0,
        "unique_ips": 0,
        "views_today": 0,
        "views_this_week": 0,
        "views_this_month": 0,
        "recent_views": [],
    }


@pytest.mark.asyncio
async def test_view_stats_unavailable_after_deactivation(session_maker):
    owner = await create_owner(session_maker)
    link = await _issue(session_maker, owner)
    async with session_maker() as session:
        await deactivate_share_link(user_id=owner, db=session)
    async with session_maker() as session:
        assert await get_dashboard_view_stats(user_id=owner, share_token=link.share_token, db=session) is None
