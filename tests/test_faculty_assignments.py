# tests/test_faculty_assignments.py
from __future__ import annotations

import uuid

import pytest

from edushield.common.errors import ConflictError, NotFoundError
from edushield.schemas.student_faculty import BulkStudentFacultyCreate, StudentFacultyCreate
from edushield.services.faculty_assignments import FacultyAssignmentService

pytestmark = pytest.mark.anyio


@pytest.fixture
def service(sessionmaker):
    return FacultyAssignmentService(sessionmaker)


async def test_assign_and_query(service, make_faculty, make_student):
    f = await make_faculty()
    s = await make_student()
    out = await service.assign(
        StudentFacultyCreate(faculty_id=f.id, student_id=s.id, subject="Physics", academic_year="2024-25")
    )
    assert out.is_active and out.subject == "Physics"
    assert await service.is_assigned(f.id, s.id)
    assert (await service.get_assignment(f.id, s.id)).academic_year == "2024-25"
    assert [a.student_id for a in await service.list_for_faculty(f.id)] == [s.id]
    assert [a.faculty_id for a in await service.list_for_student(s.id)] == [f.id]
    assert await service.count_active_for_faculty(f.id) == 1


async def test_assign_errors(service, make_faculty, make_student):
    f = await make_faculty()
    s = await make_student()
    await service.assign(StudentFacultyCreate(faculty_id=f.id, student_id=s.id))
    with pytest.raises(ConflictError):
        await service.assign(StudentFacultyCreate(faculty_id=f.id, student_id=s.id))
    with pytest.raises(NotFoundError):
        await service.assign(StudentFacultyCreate(faculty_id=uuid.uuid4(), student_id=s.id))
    with pytest.raises(NotFoundError):
        await service.assign(StudentFacultyCreate(faculty_id=f.id, student_id=uuid.uuid4()))


async def test_deactivation_is_soft(service, make_faculty, make_student):
    f = await make_faculty()
    s = await make_student()
    await service.assign(StudentFacultyCreate(faculty_id=f.id, student_id=s.id))

    assert await service.deactivate(f.id, s.id) is True
    assert await service.deactivate(f.id, s.id) is False

    kept = await service.get_assignment(f.id, s.id)
    assert kept is not None and kept.is_active is False
    assert not await service.is_assigned(f.id, s.id)
    assert await service.list_for_faculty(f.id) == []
    assert len(await service.list_for_faculty(f.id, active_only=False)) == 1
    assert await service.count_active_for_faculty(f.id) == 0

    assert await service.activate(f.id, s.id) is True
    assert await service.is_assigned(f.id, s.id)


async def test_toggle_missing_assignment(service):
    with pytest.raises(NotFoundError):
        await service.deactivate(uuid.uuid4(), uuid.uuid4())


async def test_bulk_assign_skips_existing(service, make_faculty, make_student):
    f = await make_faculty()
    s1 = await make_student()
    s2 = await make_student()
    await service.assign(StudentFacultyCreate(faculty_id=f.id, student_id=s1.id))

    created = await service.bulk_assign(
        BulkStudentFacultyCreate(faculty_id=f.id, student_ids=[s1.id, s2.id, s2.id], subject="Chemistry")
    )
    assert [c.student_id for c in created] == [s2.id]
    assert await service.count_active_for_faculty(f.id) == 2


async def test_bulk_assign_unknown_student_rolls_back(service, make_faculty, make_student):
    f = await make_faculty()
    s = await make_student()
    with pytest.raises(NotFoundError):
        await service.bulk_assign(BulkStudentFacultyCreate(faculty_id=f.id, student_ids=[s.id, uuid.uuid4()]))
    assert not await service.is_assigned(f.id, s.id)
