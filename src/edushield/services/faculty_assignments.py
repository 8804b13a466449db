# src/edushield/services/faculty_assignments.py
from __future__ import annotations

import uuid
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushield.app_logger import get_logger
from edushield.common.errors import ConflictError, NotFoundError
from edushield.db.base import utcnow
from edushield.db.models import Faculty, Student, StudentFaculty
from edushield.schemas.student_faculty import (
    BulkStudentFacultyCreate,
    StudentFacultyCreate,
    StudentFacultyOut,
)

log = get_logger("faculty")


class FacultyAssignmentService:
    """Faculty <-> student links. Removal only flips ``is_active``; rows stay for history."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    @staticmethod
    async def _require(session: AsyncSession, model, ident: uuid.UUID, name: str):
        obj = await session.get(model, ident)
        if obj is None:
            raise NotFoundError(name, id=ident)
        return obj

    async def assign(self, data: StudentFacultyCreate) -> StudentFacultyOut:
        async with self._sessionmaker() as session, session.begin():
            await self._require(session, Faculty, data.faculty_id, "Faculty")
            await self._require(session, Student, data.student_id, "Student")
            if await session.get(StudentFaculty, (data.faculty_id, data.student_id)) is not None:
                raise ConflictError(
                    "Faculty is already assigned to this student",
                    context={"faculty_id": str(data.faculty_id), "student_id": str(data.student_id)},
                )
            row = StudentFaculty(**data.model_dump(), assigned_date=utcnow(), is_active=True)
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError("Faculty is already assigned to this student") from exc
            out = StudentFacultyOut.model_validate(row)
        log.info("assigned faculty %s to student %s", data.faculty_id, data.student_id)
        return out

    async def bulk_assign(self, data: BulkStudentFacultyCreate) -> List[StudentFacultyOut]:
        """Assign one faculty member to many students. Existing pairs are left as they are."""
        created: List[StudentFacultyOut] = []
        async with self._sessionmaker() as session, session.begin():
            await self._require(session, Faculty, data.faculty_id, "Faculty")
            for student_id in dict.fromkeys(data.student_ids):
                await self._require(session, Student, student_id, "Student")
                if await session.get(StudentFaculty, (data.faculty_id, student_id)) is not None:
                    continue
                row = StudentFaculty(
                    faculty_id=data.faculty_id,
                    student_id=student_id,
                    subject=data.subject,
                    academic_year=data.academic_year,
                    semester=data.semester,
                    notes=data.notes,
                    assigned_date=utcnow(),
                    is_active=True,
                )
                session.add(row)
                await session.flush()
                created.append(StudentFacultyOut.model_validate(row))
        log.info("bulk-assigned faculty %s to %d student(s)", data.faculty_id, len(created))
        return created

    async def _set_active(self, faculty_id: uuid.UUID, student_id: uuid.UUID, active: bool) -> bool:
        async with self._sessionmaker() as session, session.begin():
            row = await session.get(StudentFaculty, (faculty_id, student_id))
            if row is None:
                raise NotFoundError("StudentFaculty", faculty_id=faculty_id, student_id=student_id)
            if row.is_active == active:
                return False
            row.is_active = active
        log.info("faculty %s / student %s active=%s", faculty_id, student_id, active)
        return True

    async def deactivate(self, faculty_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        """Returns False when the assignment was already inactive."""
        return await self._set_active(faculty_id, student_id, False)

    async def activate(self, faculty_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        return await self._set_active(faculty_id, student_id, True)

    async def get_assignment(self, faculty_id: uuid.UUID, student_id: uuid.UUID) -> Optional[StudentFacultyOut]:
        async with self._sessionmaker() as session:
            row = await session.get(StudentFaculty, (faculty_id, student_id))
            return StudentFacultyOut.model_validate(row) if row else None

    async def _list(self, criterion, active_only: bool) -> List[StudentFacultyOut]:
        stmt = sa.select(StudentFaculty).where(criterion)
        if active_only:
            stmt = stmt.where(StudentFaculty.is_active.is_(True))
        stmt = stmt.order_by(StudentFaculty.assigned_date.desc())
        async with self._sessionmaker() as session:
            return [StudentFacultyOut.model_validate(r) for r in (await session.execute(stmt)).scalars()]

    async def list_for_faculty(self, faculty_id: uuid.UUID, active_only: bool = True) -> List[StudentFacultyOut]:
        return await self._list(StudentFaculty.faculty_id == faculty_id, active_only)

    async def list_for_student(self, student_id: uuid.UUID, active_only: bool = True) -> List[StudentFacultyOut]:
        return await self._list(StudentFaculty.student_id == student_id, active_only)

    async def is_assigned(self, faculty_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        """True only for an active assignment."""
        async with self._sessionmaker() as session:
            row = await session.get(StudentFaculty, (faculty_id, student_id))
            return row is not None and row.is_active

    async def count_active_for_faculty(self, faculty_id: uuid.UUID) -> int:
        stmt = sa.select(sa.func.count()).select_from(StudentFaculty).where(
            StudentFaculty.faculty_id == faculty_id, StudentFaculty.is_active.is_(True)
        )
        async with self._sessionmaker() as session:
            return int((await session.execute(stmt)).scalar_one())
