import pytest
from sqlalchemy import func, select

from models.project import Project
from services.errors import ValidationFailedError
from services.projects import validate_project_fields
from tests.factories import auth_header, create_owner


VALID_PROJECT = {
    "name": "Storefront",
    "client": "Acme",
    "project_url": "https://shop.acme.test",
    "github_url": "https://github.com/acme/storefront",
}


async def _project_count(session_maker):
    async with session_maker() as session:
        return (await session.execute(select(func.count(Project.id)))).scalar_one()


def test_validate_project_fields_trims_values():
    cleaned = validate_project_fields({**VALID_PROJECT, "name": "  Storefront  "})
    assert cleaned["name"] == "Storefront"


@pytest.mark.parametrize(
    "override, message",
    [
        ({"client": "   "}, "All fields are required"),
        ({"project_url": "shop.acme.test"}, "Please enter valid URLs"),
        ({"github_url": "ftp://github.com/acme"}, "Please enter valid URLs"),
    ],
)
def test_validate_project_fields_rejects_bad_input(override, message):
    with pytest.raises(ValidationFailedError) as exc_info:
        validate_project_fields({**VALID_PROJECT, **override})
    assert message in exc_info.value.message


@pytest.mark.asyncio
async def test_project_crud_round_trip(api_client, session_maker):
    owner = await create_owner(session_maker)
    headers = auth_header(owner)

    created = await api_client.post("/projects", json=VALID_PROJECT, headers=headers)
    assert created.status_code == 201
    project = created.json()
    assert project["github_url"] == VALID_PROJECT["github_url"]

    listed = await api_client.get("/projects", headers=headers)
    assert [item["id"] for item in listed.json()] == [project["id"]]

    updated = await api_client.put(
        f"/projects/{project['id']}",
        json={**VALID_PROJECT, "client": "Acme Corp"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["client"] == "Acme Corp"

    fetched = await api_client.get(f"/projects/{project['id']}", headers=headers)
    assert fetched.json()["client"] == "Acme Corp"

    deleted = await api_client.delete(f"/projects/{project['id']}", headers=headers)
    assert deleted.status_code == 204
    assert await _project_count(session_maker) == 0


@pytest.mark.asyncio
async def test_invalid_project_is_rejected_before_any_write(api_client, session_maker):
    owner = await create_owner(session_maker)

    response = await api_client.post(
        "/projects",
        json={**VALID_PROJECT, "project_url": "not a url"},
        headers=auth_header(owner),
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_failed"
    assert body["retryable"] is False
    assert await _project_count(session_maker) == 0


@pytest.mark.asyncio
async def test_projects_are_scoped_to_their_owner(api_client, session_maker):
    owner = await create_owner(session_maker)
    stranger = await create_owner(session_maker)

    created = await api_client.post("/projects", json=VALID_PROJECT, headers=auth_header(owner))
    project_id = created.json()["id"]

    assert (await api_client.get("/projects", headers=auth_header(stranger))).json() == []
    for method in ("get", "delete"):
        response = await getattr(api_client, method)(f"/projects/{project_id}", headers=auth_header(stranger))
        assert response.status_code == 404
    response = await api_client.put(f"/projects/{project_id}", json=VALID_PROJECT, headers=auth_header(stranger))
    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found."
    assert await _project_count(session_maker) == 1


@pytest.mark.asyncio
async def test_projects_require_a_session(api_client):
    response = await api_client.get("/projects")

    assert response.status_code == 401
    assert response.json() == {
        "detail": "Please sign in to continue.",
        "error": "not_authenticated",
        "retryable": False,
    }


@pytest.mark.asyncio
async def test_projects_reject_a_forged_session(api_client):
    response = await api_client.get("/projects", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"
