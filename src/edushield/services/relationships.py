# src/edushield/services/relationships.py
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushield.db.models import Faculty, Guardian, Student, StudentFaculty, StudentGuardian


class SqlRelationshipGraph:
    """Read-only relationship lookups used by ``AccessResolver``."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def is_active_faculty_assignee(self, user_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        stmt = (
            sa.select(sa.literal(1))
            .select_from(StudentFaculty)
            .join(Faculty, Faculty.id == StudentFaculty.faculty_id)
            .where(
                Faculty.user_id == user_id,
                StudentFaculty.student_id == student_id,
                StudentFaculty.is_active.is_(True),
            )
            .limit(1)
        )
        async with self._sessionmaker() as session:
            return (await session.execute(stmt)).first() is not None

    async def is_active_guardian(self, user_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        link = (
            sa.select(sa.literal(1))
            .select_from(StudentGuardian)
            .join(Guardian, Guardian.id == StudentGuardian.guardian_id)
            .where(
                Guardian.user_id == user_id,
                StudentGuardian.student_id == student_id,
                StudentGuardian.is_active.is_(True),
            )
            .limit(1)
        )
        # Only students with no link rows at all fall back to the pointer.
        has_links = sa.exists().where(StudentGuardian.student_id == Student.id)
        legacy = (
            sa.select(sa.literal(1))
            .select_from(Student)
            .join(Guardian, Guardian.id == Student.primary_guardian_id)
            .where(Student.id == student_id, Guardian.user_id == user_id, ~has_links)
            .limit(1)
        )
        async with self._sessionmaker() as session:
            if (await session.execute(link)).first() is not None:
                return True
            return (await session.execute(legacy)).first() is not None
