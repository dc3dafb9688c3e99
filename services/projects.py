"""Owner-scoped project CRUD."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.project import Project
from models.timestamps import as_utc
from services.errors import NotFoundError, ValidationFailedError, storage_operation


PROJECT_FIELDS = ("name", "client", "project_url", "github_url")


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_project_fields(fields: Dict[str, Any]) -> Dict[str, str]:
    """Trim and check project input before anything is written."""
    cleaned = {key: str(fields.get(key) or "").strip() for key in PROJECT_FIELDS}
    missing = [key for key, value in cleaned.items() if not value]
    if missing:
        raise ValidationFailedError(f"All fields are required: missing {', '.join(missing)}.")
    if not _is_absolute_url(cleaned["project_url"]) or not _is_absolute_url(cleaned["github_url"]):
        raise ValidationFailedError("Please enter valid URLs for both project and GitHub links.")
    return cleaned


def serialize_project(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "client": project.client,
        "project_url": project.project_url,
        "github_url": project.github_url,
        "created_at": as_utc(project.created_at),
        "updated_at": as_utc(project.updated_at),
    }


async def _get_owned_project(user_id: str, project_id: str, db: AsyncSession) -> Project:
    result = await db.execute(
        select(Project).where(Project.id == project_id, Project.user_id == user_id)
    )
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError("Project not found.")
    return project


@storage_operation
async def list_projects(*, user_id: str, db: AsyncSession) -> List[Project]:
    result = await db.execute(
        select(Project).where(Project.user_id == user_id).order_by(Project.created_at.desc())
    )
    return list(result.scalars().all())


@storage_operation
async def get_project(*, user_id: str, project_id: str, db: AsyncSession) -> Project:
    return await _get_owned_project(user_id, project_id, db)


@storage_operation
async def create_project(*, user_id: str, fields: Dict[str, Any], db: AsyncSession) -> Project:
    cleaned = validate_project_fields(fields)
    project = Project(id=str(uuid.uuid4()), user_id=user_id, **cleaned)
    db.add(project)
    await db.commit()
    await db.refresh(project)
    return project


@storage_operation
async def update_project(
    *,
    user_id: str,
    project_id: str,
    fields: Dict[str, Any],
    db: AsyncSession,
) -> Project:
    cleaned = validate_project_fields(fields)
    project = await _get_owned_project(user_id, project_id, db)
    for key, value in cleaned.items():
        setattr(project, key, value)
    await db.commit()
    await db.refresh(project)
    return project


@storage_operation
async def delete_project(*, user_id: str, project_id: str, db: AsyncSession) -> None:
    project = await _get_owned_project(user_id, project_id, db)
    await db.delete(project)
    await db.commit()
