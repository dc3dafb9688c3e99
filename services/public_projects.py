"""Read-only portfolio access for holders of a share token."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.profile import Profile
from models.project import Project
from models.timestamps import as_utc
from services.errors import storage_operation
from services.sharing import validate_share_token


def serialize_public_project(project: Project) -> Dict[str, Any]:
    """Public shape of a project; the source repository URL is never included."""
    return {
        "id": project.id,
        "name": project.name,
        "client": project.client,
        "project_url": project.project_url,
        "created_at": as_utc(project.created_at),
    }


@storage_operation
async def list_shared_projects(
    *,
    share_token: str,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Return the owner's projects and public profile, or ``None`` for an invalid token."""
    user_id = await validate_share_token(share_token=share_token, db=db, now=now)
    if user_id is None:
        return None

    profile_result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    profile = profile_result.scalar_one_or_none()

    projects_result = await db.execute(
        select(Project)
        .where(Project.user_id == user_id)
        .order_by(Project.created_at.desc())
    )
    projects = projects_result.scalars().all()

    return {
        "projects": [serialize_public_project(project) for project in projects],
        "profile": {
            "display_name": profile.public_name if profile else "Anonymous",
        },
    }


async def is_valid_share_token(*, share_token: str, db: AsyncSession) -> bool:
    return await validate_share_token(share_token=share_token, db=db) is not None
