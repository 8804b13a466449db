# src/edushield/services/students.py
from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushield.app_logger import get_logger
from edushield.cache import keys as cache_keys
from edushield.cache.store import CacheCoherentStore, CacheEntity
from edushield.common.errors import ConflictError, NotFoundError
from edushield.db.models import Student
from edushield.schemas.student import StudentCreate, StudentOut, StudentPatch

log = get_logger("students")


class StudentService:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], cache: CacheCoherentStore):
        self._sessionmaker = sessionmaker
        self._cache = cache

    # ---- reads (read-through) ----
    async def _load_one(self, *criteria) -> Optional[StudentOut]:
        async with self._sessionmaker() as session:
            row = (await session.execute(sa.select(Student).where(*criteria))).scalar_one_or_none()
            return StudentOut.model_validate(row) if row else None

    async def get_by_id(self, student_id: uuid.UUID) -> Optional[StudentOut]:
        return await self._cache.get_or_load(
            CacheEntity.STUDENT,
            cache_keys.student_key(student_id),
            lambda: self._load_one(Student.id == student_id),
            StudentOut,
        )

    async def get_by_email(self, email: str) -> Optional[StudentOut]:
        return await self._cache.get_or_load(
            CacheEntity.STUDENT,
            cache_keys.student_email_key(email),
            lambda: self._load_one(Student.email == email),
            StudentOut,
        )

    async def get_by_roll_number(self, roll_number: str) -> Optional[StudentOut]:
        return await self._cache.get_or_load(
            CacheEntity.STUDENT,
            cache_keys.student_roll_key(roll_number),
            lambda: self._load_one(Student.roll_number == roll_number),
            StudentOut,
        )

    # ---- writes (invalidate every derived key) ----
    async def create(self, data: StudentCreate) -> StudentOut:
        async with self._sessionmaker() as session, session.begin():
            row = Student(**data.model_dump())
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    "A student with this email or roll number already exists",
                    context={"email": data.email, "roll_number": data.roll_number},
                ) from exc
            out = StudentOut.model_validate(row)
        # Natural keys may still hold a previously deleted student with the same email or roll number.
        await self._cache.invalidate_all(CacheEntity.STUDENT, cache_keys.student_keys(out))
        log.info("created student %s (%s)", out.id, out.roll_number)
        return out

    async def update(self, student_id: uuid.UUID, patch: StudentPatch) -> StudentOut:
        fields = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None or k == "owner_user_id"}
        async with self._sessionmaker() as session, session.begin():
            row = await session.get(Student, student_id)
            if row is None:
                raise NotFoundError("Student", student_id=student_id)
            before = StudentOut.model_validate(row)
            for name, value in fields.items():
                setattr(row, name, value)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError("A student with this email or roll number already exists") from exc
            after = StudentOut.model_validate(row)
        # Old natural keys must go too, or a read by the old email returns the old record.
        await self._cache.invalidate_all(
            CacheEntity.STUDENT,
            cache_keys.merge_keys(cache_keys.student_keys(before), cache_keys.student_keys(after)),
        )
        return after

    async def delete(self, student_id: uuid.UUID) -> None:
        async with self._sessionmaker() as session, session.begin():
            row = await session.get(Student, student_id)
            if row is None:
                raise NotFoundError("Student", student_id=student_id)
            snapshot = StudentOut.model_validate(row)
            await session.delete(row)
        await self._cache.invalidate_all(CacheEntity.STUDENT, cache_keys.student_keys(snapshot))
        await self._cache.invalidate_all(
            CacheEntity.PERFORMANCE, [cache_keys.student_performances_key(student_id)]
        )
        log.info("deleted student %s", student_id)
