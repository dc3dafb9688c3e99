"""
Router for the owner's own projects.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.projects import (
    create_project,
    delete_project,
    get_project,
    list_projects,
    serialize_project,
    update_project,
)

router = APIRouter()


class ProjectRequest(BaseModel):
    name: str
    client: str
    project_url: str
    github_url: str


class ProjectResponse(BaseModel):
    id: str
    name: str
    client: str
    project_url: str
    github_url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@router.get("", response_model=List[ProjectResponse])
async def list_own_projects(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's projects, newest first."""
    projects = await list_projects(user_id=auth.user_id, db=db)
    return [serialize_project(project) for project in projects]


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_own_project(
    request: ProjectRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    project = await create_project(user_id=auth.user_id, fields=request.model_dump(), db=db)
    return serialize_project(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_own_project(
    project_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    project = await get_project(user_id=auth.user_id, project_id=project_id, db=db)
    return serialize_project(project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_own_project(
    project_id: str,
    request: ProjectRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    project = await update_project(
        user_id=auth.user_id,
        project_id=project_id,
        fields=request.model_dump(),
        db=db,
    )
    return serialize_project(project)


@router.delete("/{project_id}", status_code=204)
async def delete_own_project(
    project_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_project(user_id=auth.user_id, project_id=project_id, db=db)
    return Response(status_code=204)
