# tests/test_entity_services.py
from __future__ import annotations

import uuid

import pytest
import sqlalchemy as sa

from edushield.cache import keys as cache_keys
from edushield.cache.store import CacheCoherentStore
from edushield.common.enums import Role
from edushield.common.errors import ConflictError, NotFoundError
from edushield.db.models import Student, User
from edushield.schemas.student import StudentCreate, StudentPatch
from edushield.schemas.user import UserPatch
from edushield.services.students import StudentService
from edushield.services.users import UserService

from tests.conftest import TTLS, FailingCacheBackend

pytestmark = pytest.mark.anyio


@pytest.fixture
def students(sessionmaker, cache):
    return StudentService(sessionmaker, cache)


@pytest.fixture
def users(sessionmaker, cache):
    return UserService(sessionmaker, cache)


def new_student(**overrides) -> StudentCreate:
    data = dict(first_name="Ada", last_name="Lovelace", email="ada@example.com", roll_number="R-100", grade="9")
    data.update(overrides)
    return StudentCreate(**data)


async def rename_behind_cache(sessionmaker, student_id, first_name):
    async with sessionmaker() as session, session.begin():
        await session.execute(sa.update(Student).where(Student.id == student_id).values(first_name=first_name))


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------

async def test_reads_go_through_cache(students, sessionmaker, cache_backend):
    created = await students.create(new_student())

    assert (await students.get_by_id(created.id)).first_name == "Ada"
    assert cache_keys.student_key(created.id) in cache_backend.data
    assert cache_backend.ttls[cache_keys.student_key(created.id)] == 900

    # A change made outside the service is not seen until the entry is invalidated.
    await rename_behind_cache(sessionmaker, created.id, "Augusta")
    assert (await students.get_by_id(created.id)).first_name == "Ada"


async def test_natural_key_lookups(students, cache_backend):
    created = await students.create(new_student())
    assert (await students.get_by_email("ada@example.com")).id == created.id
    assert (await students.get_by_roll_number("R-100")).id == created.id
    assert "student_email_ada@example.com" in cache_backend.data
    assert "student_roll_R-100" in cache_backend.data
    assert await students.get_by_email("nobody@example.com") is None


async def test_update_never_serves_pre_update_value(students):
    created = await students.create(new_student())
    # Warm every derived key.
    await students.get_by_id(created.id)
    await students.get_by_email("ada@example.com")
    await students.get_by_roll_number("R-100")

    await students.update(created.id, StudentPatch(first_name="Augusta", email="augusta@example.com"))

    assert (await students.get_by_id(created.id)).first_name == "Augusta"
    assert (await students.get_by_roll_number("R-100")).first_name == "Augusta"
    assert (await students.get_by_email("augusta@example.com")).first_name == "Augusta"
    # The old email no longer resolves.
    assert await students.get_by_email("ada@example.com") is None


async def test_update_cannot_move_guardian_pointer():
    assert "primary_guardian_id" not in StudentPatch.model_fields


async def test_duplicate_student_conflicts(students):
    await students.create(new_student())
    with pytest.raises(ConflictError):
        await students.create(new_student(roll_number="R-200"))


async def test_delete_invalidates(students, cache_backend):
    created = await students.create(new_student())
    await students.get_by_id(created.id)
    await students.delete(created.id)
    assert cache_keys.student_key(created.id) not in cache_backend.data
    assert await students.get_by_id(created.id) is None


async def test_missing_student(students):
    with pytest.raises(NotFoundError):
        await students.update(uuid.uuid4(), StudentPatch(grade="11"))
    with pytest.raises(NotFoundError):
        await students.delete(uuid.uuid4())


async def test_cache_outage_still_returns_authoritative_data(sessionmaker):
    service = StudentService(sessionmaker, CacheCoherentStore(FailingCacheBackend(), ttls=TTLS, op_timeout=1.0))
    created = await service.create(new_student())
    await service.update(created.id, StudentPatch(grade="10"))
    fetched = await service.get_by_id(created.id)
    assert fetched.grade == "10"


async def test_failed_invalidation_does_not_serve_stale_student(sessionmaker):
    backend = FailingCacheBackend(failing=())
    service = StudentService(sessionmaker, CacheCoherentStore(backend, ttls=TTLS, op_timeout=1.0))
    created = await service.create(new_student())
    await service.get_by_id(created.id)

    backend.failing = {"delete"}
    await service.update(created.id, StudentPatch(grade="12"))
    # The cached copy still says grade 9, but it is bypassed.
    assert b'"grade":"9"' in backend.data[cache_keys.student_key(created.id)]
    assert (await service.get_by_id(created.id)).grade == "12"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def test_user_reads_and_updates(users, make_user, sessionmaker, cache_backend):
    user = await make_user(Role.FACULTY, email="staff@example.com")

    assert (await users.get_by_id(user.id)).email == "staff@example.com"
    assert (await users.get_by_email("staff@example.com")).id == user.id
    assert cache_backend.ttls[cache_keys.user_key(user.id)] == 1200

    updated = await users.update(user.id, UserPatch(email="lecturer@example.com", full_name="L. Ecturer"))
    assert updated.full_name == "L. Ecturer"
    assert await users.get_by_email("staff@example.com") is None
    assert (await users.get_by_email("lecturer@example.com")).full_name == "L. Ecturer"
    assert (await users.get_by_id(user.id)).email == "lecturer@example.com"


async def test_user_deactivate(users, make_user, sessionmaker):
    user = await make_user(Role.PARENT)
    await users.get_by_id(user.id)
    out = await users.deactivate(user.id)
    assert out.is_active is False
    assert (await users.get_by_id(user.id)).is_active is False
    async with sessionmaker() as session:
        assert (await session.get(User, user.id)).is_active is False


async def test_missing_user(users):
    with pytest.raises(NotFoundError):
        await users.deactivate(uuid.uuid4())
