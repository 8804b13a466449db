# tests/test_deps.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport
from jose import jwt

from edushield.auth.access import AccessResolver, Action, ResourceKind, ResourceRef
from edushield.auth.deps import get_access_resolver, get_principal, require_allowed
from edushield.auth.principal import Principal
from edushield.core.config import settings

pytestmark = pytest.mark.anyio

STUDENT_ID = uuid.uuid4()
OWNER_ID = uuid.uuid4()


class NoRelationships:
    async def is_active_faculty_assignee(self, user_id, student_id):
        return False

    async def is_active_guardian(self, user_id, student_id):
        return False


def build_app() -> FastAPI:
    app = FastAPI()

    @app.delete("/students/{student_id}")
    async def delete_student(
        student_id: uuid.UUID,
        principal: Principal = Depends(get_principal),
        resolver: AccessResolver = Depends(get_access_resolver),
    ):
        ref = ResourceRef(kind=ResourceKind.STUDENT, resource_id=student_id, student_id=student_id, owner_user_id=OWNER_ID)
        require_allowed(await resolver.authorize(principal, ref, Action.DELETE))
        return {"deleted": str(student_id)}

    app.dependency_overrides[get_access_resolver] = lambda: AccessResolver(NoRelationships())
    return app


def token(role: str, sub: str | None = None, **extra) -> str:
    claims = {"sub": sub or str(uuid.uuid4()), "role": role, **extra}
    return jwt.encode(claims, settings.ENCRYPTION_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
async def client():
    async with httpx.AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as c:
        yield c


async def call(client, bearer: str | None):
    headers = {"Authorization": f"Bearer {bearer}"} if bearer else {}
    return await client.delete(f"/students/{STUDENT_ID}", headers=headers)


async def test_admin_allowed(client):
    resp = await call(client, token("Admin"))
    assert resp.status_code == 200
    assert resp.json() == {"deleted": str(STUDENT_ID)}


async def test_denial_is_403(client):
    assert (await call(client, token("Faculty"))).status_code == 403
    assert (await call(client, token("Student"))).status_code == 403


async def test_owner_student_allowed(client):
    assert (await call(client, token("Student", sub=str(OWNER_ID)))).status_code == 200


async def test_missing_token_is_401(client):
    assert (await call(client, None)).status_code == 401


async def test_bad_signature_is_401(client):
    forged = jwt.encode({"sub": str(uuid.uuid4()), "role": "Admin"}, "some-other-secret", algorithm="HS256")
    assert (await call(client, forged)).status_code == 401


async def test_expired_token_is_401(client):
    expired = token("Admin", exp=int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp()))
    resp = await call(client, expired)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


async def test_unknown_role_is_403(client):
    assert (await call(client, token("Janitor"))).status_code == 403


async def test_non_uuid_subject_is_401(client):
    assert (await call(client, token("Admin", sub="dev-user"))).status_code == 401
