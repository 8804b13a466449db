# src/edushield/services/guardian_assignments.py
"""
Guardian <-> student assignments and the legacy primary-guardian pointer.

``students.primary_guardian_id`` predates the ``student_guardians`` table
and is still read by older clients. This service is the only writer of
that column, and every mutation leaves it equal to the guardian id of the
single active primary-contact row for the student (or NULL when there is
none). Each public mutation runs in one transaction; the pointer and the
rows commit together or not at all.

Promotion after losing the primary contact picks the remaining active
assignment with the earliest ``assigned_date`` (ties broken by guardian
id).

Concurrent mutations for the same student are serialized by a
per-student ``asyncio.Lock`` in this process and by ``SELECT ... FOR
UPDATE`` on the student row across processes (see
``SERIALIZE_GUARDIAN_MUTATIONS``).
"""

from __future__ import annotations

import asyncio
import uuid
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushield.app_logger import get_logger
from edushield.cache import keys as cache_keys
from edushield.cache.store import CacheCoherentStore, CacheEntity
from edushield.common.errors import ConflictError, NotFoundError, ValidationError
from edushield.core.config import settings
from edushield.db.base import utcnow
from edushield.db.models import Guardian, Student, StudentGuardian
from edushield.schemas.student import StudentOut
from edushield.schemas.student_guardian import (
    BulkStudentGuardianCreate,
    StudentGuardianCreate,
    StudentGuardianOut,
    StudentGuardianPatch,
)

log = get_logger("guardians")

SYNCED_NOTE = "Synced from legacy parent relationship"

# Columns that may not be patched to NULL.
_NON_NULLABLE = frozenset({"relationship_label", "is_authorized_pickup", "is_emergency_contact"})


class GuardianAssignmentService:
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        cache: Optional[CacheCoherentStore] = None,
        *,
        serialize: Optional[bool] = None,
    ) -> None:
        self._sessionmaker = sessionmaker
        self._cache = cache
        self._serialize = settings.SERIALIZE_GUARDIAN_MUTATIONS if serialize is None else serialize
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ==================================================================
    # Transaction scaffolding
    # ==================================================================
    def _lock_for(self, student_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(student_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[student_id] = lock
        return lock

    @asynccontextmanager
    async def _scope(
        self, student_ids: Iterable[uuid.UUID]
    ) -> AsyncIterator[Tuple[AsyncSession, Dict[uuid.UUID, Student]]]:
        """
        Open one transaction holding every listed student that exists.

        Locks are taken in id order so overlapping bulk calls cannot
        deadlock. Cache keys of the students are invalidated only after a
        successful commit.
        """
        ids = sorted(set(student_ids), key=str)
        async with AsyncExitStack() as stack:
            if self._serialize:
                for sid in ids:
                    await stack.enter_async_context(self._lock_for(sid))

            async with self._sessionmaker() as session:
                async with session.begin():
                    stmt = sa.select(Student).where(Student.id.in_(ids)).order_by(Student.id)
                    if self._serialize:
                        stmt = stmt.with_for_update()
                    students = {s.id: s for s in (await session.execute(stmt)).scalars()}
                    yield session, students

            await self._invalidate(students.values())

    @asynccontextmanager
    async def _student_scope(self, student_id: uuid.UUID) -> AsyncIterator[Tuple[AsyncSession, Student]]:
        async with self._scope([student_id]) as (session, students):
            student = students.get(student_id)
            if student is None:
                raise NotFoundError("Student", student_id=student_id)
            yield session, student

    async def _invalidate(self, students: Iterable[Student]) -> None:
        if self._cache is None:
            return
        keys = cache_keys.merge_keys(*(cache_keys.student_keys(s) for s in students))
        if keys:
            await self._cache.invalidate_all(CacheEntity.STUDENT, keys)

    # ==================================================================
    # Row helpers (run inside a scope)
    # ==================================================================
    @staticmethod
    async def _require_row(session: AsyncSession, guardian_id: uuid.UUID, student_id: uuid.UUID) -> StudentGuardian:
        row = await session.get(StudentGuardian, (guardian_id, student_id))
        if row is None:
            raise NotFoundError("StudentGuardian", guardian_id=guardian_id, student_id=student_id)
        return row

    @staticmethod
    async def _active_primaries(session: AsyncSession, student_id: uuid.UUID) -> List[StudentGuardian]:
        stmt = sa.select(StudentGuardian).where(
            StudentGuardian.student_id == student_id,
            StudentGuardian.is_primary_contact.is_(True),
            StudentGuardian.is_active.is_(True),
        )
        return list((await session.execute(stmt)).scalars())

    async def _promote(self, session: AsyncSession, student: Student, row: StudentGuardian) -> None:
        # The demotion must reach the database before the promotion, or the
        # partial unique index on (student_id) WHERE primary AND active trips.
        for other in await self._active_primaries(session, student.id):
            if other.guardian_id != row.guardian_id:
                other.is_primary_contact = False
        await session.flush()

        row.make_primary_contact()
        student.primary_guardian_id = row.guardian_id
        await session.flush()

    async def _reelect(self, session: AsyncSession, student: Student, excluded: uuid.UUID) -> None:
        """Give the student a new primary contact after *excluded* lost it, or clear the pointer."""
        stmt = (
            sa.select(StudentGuardian)
            .where(
                StudentGuardian.student_id == student.id,
                StudentGuardian.guardian_id != excluded,
                StudentGuardian.is_active.is_(True),
            )
            .order_by(StudentGuardian.assigned_date, StudentGuardian.guardian_id)
            .limit(1)
        )
        successor = (await session.execute(stmt)).scalar_one_or_none()
        if successor is None:
            student.primary_guardian_id = None
            await session.flush()
            log.info("student %s has no active guardian left; pointer cleared", student.id)
            return
        await self._promote(session, student, successor)
        log.info("guardian %s promoted to primary contact of student %s", successor.guardian_id, student.id)

    @staticmethod
    async def _flush_new(session: AsyncSession, row: StudentGuardian) -> None:
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Guardian is already assigned to this student",
                context={"guardian_id": str(row.guardian_id), "student_id": str(row.student_id)},
            ) from exc

    # ==================================================================
    # Core mutations
    # ==================================================================
    async def create_assignment(self, data: StudentGuardianCreate) -> StudentGuardianOut:
        async with self._student_scope(data.student_id) as (session, student):
            if await session.get(Guardian, data.guardian_id) is None:
                raise NotFoundError("Guardian", guardian_id=data.guardian_id)
            if await session.get(StudentGuardian, (data.guardian_id, data.student_id)) is not None:
                raise ConflictError(
                    "Guardian is already assigned to this student",
                    context={"guardian_id": str(data.guardian_id), "student_id": str(data.student_id)},
                )

            row = StudentGuardian(
                guardian_id=data.guardian_id,
                student_id=data.student_id,
                relationship_label=data.relationship_label,
                is_primary_contact=False,
                is_authorized_pickup=data.is_authorized_pickup,
                is_emergency_contact=data.is_emergency_contact,
                is_active=True,
                notes=data.notes,
                assigned_date=data.assigned_date or utcnow(),
            )
            await self._flush_new(session, row)
            if data.is_primary_contact:
                await self._promote(session, student, row)
            out = StudentGuardianOut.model_validate(row)

        log.info(
            "assigned guardian %s to student %s (relationship=%s primary=%s)",
            data.guardian_id, data.student_id, data.relationship_label, data.is_primary_contact,
        )
        return out

    async def set_primary_contact(self, guardian_id: uuid.UUID, student_id: uuid.UUID) -> StudentGuardianOut:
        async with self._student_scope(student_id) as (session, student):
            row = await self._require_row(session, guardian_id, student_id)
            if not row.is_active:
                raise ValidationError("An inactive assignment cannot be the primary contact", field="is_active")
            await self._promote(session, student, row)
            out = StudentGuardianOut.model_validate(row)
        log.info("guardian %s is now primary contact of student %s", guardian_id, student_id)
        return out

    async def delete_assignment(self, guardian_id: uuid.UUID, student_id: uuid.UUID) -> None:
        async with self._student_scope(student_id) as (session, student):
            row = await self._require_row(session, guardian_id, student_id)
            was_primary = row.is_primary
            await session.delete(row)
            await session.flush()
            if was_primary or student.primary_guardian_id == guardian_id:
                await self._reelect(session, student, excluded=guardian_id)
        log.info("removed guardian %s from student %s", guardian_id, student_id)

    async def sync_legacy_assignments(self) -> int:
        """Create the missing assignment row for every student that only has the legacy pointer."""
        unsynced = (
            sa.select(Student.id)
            .outerjoin(
                StudentGuardian,
                sa.and_(
                    StudentGuardian.student_id == Student.id,
                    StudentGuardian.guardian_id == Student.primary_guardian_id,
                ),
            )
            .where(Student.primary_guardian_id.is_not(None), StudentGuardian.student_id.is_(None))
        )
        async with self._sessionmaker() as session:
            candidates = list((await session.execute(unsynced)).scalars())
        if not candidates:
            return 0

        created = 0
        async with self._scope(candidates) as (session, students):
            for student in students.values():
                guardian_id = student.primary_guardian_id
                # Re-checked under the lock; another writer may have got here first.
                if guardian_id is None or await session.get(StudentGuardian, (guardian_id, student.id)):
                    continue
                if await session.get(Guardian, guardian_id) is None:
                    log.warning("student %s points at missing guardian %s; not synced", student.id, guardian_id)
                    continue
                row = StudentGuardian(
                    guardian_id=guardian_id,
                    student_id=student.id,
                    relationship_label="Parent",
                    is_primary_contact=False,
                    is_active=True,
                    notes=SYNCED_NOTE,
                    assigned_date=utcnow(),
                )
                await self._flush_new(session, row)
                await self._promote(session, student, row)
                created += 1

        log.info("synced %d legacy guardian pointer(s)", created)
        return created

    # ==================================================================
    # Further mutations
    # ==================================================================
    async def update_assignment(
        self, guardian_id: uuid.UUID, student_id: uuid.UUID, patch: StudentGuardianPatch
    ) -> StudentGuardianOut:
        fields = patch.model_dump(exclude_unset=True)
        make_primary = fields.pop("is_primary_contact", None)
        active = fields.pop("is_active", None)

        async with self._student_scope(student_id) as (session, student):
            row = await self._require_row(session, guardian_id, student_id)
            was_primary = row.is_primary or student.primary_guardian_id == guardian_id

            for name, value in fields.items():
                if value is None and name in _NON_NULLABLE:
                    continue
                setattr(row, name, value)

            if active is False:
                row.is_active = False
                row.is_primary_contact = False
                await session.flush()
                if was_primary:
                    await self._reelect(session, student, excluded=guardian_id)
            elif active is True and not row.is_active:
                # Reactivated rows come back as ordinary contacts.
                row.is_active = True
                row.is_primary_contact = False
                await session.flush()

            if make_primary is True:
                if not row.is_active:
                    raise ValidationError("An inactive assignment cannot be the primary contact", field="is_primary_contact")
                await self._promote(session, student, row)
            elif make_primary is False and (row.is_primary or student.primary_guardian_id == guardian_id):
                row.is_primary_contact = False
                await session.flush()
                await self._reelect(session, student, excluded=guardian_id)

            await session.flush()
            out = StudentGuardianOut.model_validate(row)
        return out

    async def remove_primary_contact(self, guardian_id: uuid.UUID, student_id: uuid.UUID) -> StudentGuardianOut:
        return await self.update_assignment(
            guardian_id, student_id, StudentGuardianPatch(is_primary_contact=False)
        )

    async def activate_assignment(self, guardian_id: uuid.UUID, student_id: uuid.UUID) -> StudentGuardianOut:
        return await self.update_assignment(guardian_id, student_id, StudentGuardianPatch(is_active=True))

    async def deactivate_assignment(self, guardian_id: uuid.UUID, student_id: uuid.UUID) -> StudentGuardianOut:
        return await self.update_assignment(guardian_id, student_id, StudentGuardianPatch(is_active=False))

    async def create_bulk_assignments(self, data: BulkStudentGuardianCreate) -> List[StudentGuardianOut]:
        """Assign one guardian to many students; unknown students and existing pairs are skipped."""
        created: List[StudentGuardianOut] = []
        async with self._scope(data.student_ids) as (session, students):
            if await session.get(Guardian, data.guardian_id) is None:
                raise NotFoundError("Guardian", guardian_id=data.guardian_id)

            existing = set(
                (
                    await session.execute(
                        sa.select(StudentGuardian.student_id).where(
                            StudentGuardian.guardian_id == data.guardian_id,
                            StudentGuardian.student_id.in_(list(students)),
                        )
                    )
                ).scalars()
            )
            todo = [sid for sid in dict.fromkeys(data.student_ids) if sid in students and sid not in existing]
            if not todo:
                raise ValidationError("No valid students to assign", field="student_ids")

            for sid in todo:
                row = StudentGuardian(
                    guardian_id=data.guardian_id,
                    student_id=sid,
                    relationship_label=data.relationship_label,
                    is_primary_contact=False,
                    is_authorized_pickup=data.is_authorized_pickup,
                    is_emergency_contact=data.is_emergency_contact,
                    is_active=True,
                    notes=data.notes,
                    assigned_date=utcnow(),
                )
                await self._flush_new(session, row)
                if data.is_primary_contact:
                    await self._promote(session, students[sid], row)
                created.append(StudentGuardianOut.model_validate(row))

        skipped = len(data.student_ids) - len(created)
        log.info("bulk-assigned guardian %s to %d student(s), skipped %d", data.guardian_id, len(created), skipped)
        return created

    # ==================================================================
    # Queries
    # ==================================================================
    async def get_assignment(self, guardian_id: uuid.UUID, student_id: uuid.UUID) -> Optional[StudentGuardianOut]:
        async with self._sessionmaker() as session:
            row = await session.get(StudentGuardian, (guardian_id, student_id))
            return StudentGuardianOut.model_validate(row) if row else None

    async def _list(self, *criteria, active_only: bool) -> List[StudentGuardianOut]:
        stmt = sa.select(StudentGuardian).where(*criteria)
        if active_only:
            stmt = stmt.where(StudentGuardian.is_active.is_(True))
        stmt = stmt.order_by(StudentGuardian.assigned_date, StudentGuardian.guardian_id)
        async with self._sessionmaker() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [StudentGuardianOut.model_validate(r) for r in rows]

    async def list_for_student(self, student_id: uuid.UUID, active_only: bool = False) -> List[StudentGuardianOut]:
        return await self._list(StudentGuardian.student_id == student_id, active_only=active_only)

    async def list_for_guardian(self, guardian_id: uuid.UUID, active_only: bool = False) -> List[StudentGuardianOut]:
        return await self._list(StudentGuardian.guardian_id == guardian_id, active_only=active_only)

    async def get_primary_for_student(self, student_id: uuid.UUID) -> Optional[StudentGuardianOut]:
        async with self._sessionmaker() as session:
            rows = await self._active_primaries(session, student_id)
            return StudentGuardianOut.model_validate(rows[0]) if rows else None

    async def count_by_relationship(self) -> Dict[str, int]:
        """Active assignments grouped by relationship label."""
        stmt = (
            sa.select(StudentGuardian.relationship_label, sa.func.count())
            .where(StudentGuardian.is_active.is_(True))
            .group_by(StudentGuardian.relationship_label)
        )
        async with self._sessionmaker() as session:
            return {label: count for label, count in (await session.execute(stmt)).all()}

    async def find_orphaned_students(self) -> List[StudentOut]:
        """Students without a single active guardian assignment."""
        has_active = (
            sa.select(StudentGuardian.student_id)
            .where(StudentGuardian.student_id == Student.id, StudentGuardian.is_active.is_(True))
            .exists()
        )
        stmt = sa.select(Student).where(~has_active).order_by(Student.last_name, Student.first_name)
        async with self._sessionmaker() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [StudentOut.model_validate(s) for s in rows]


__all__ = ["GuardianAssignmentService", "SYNCED_NOTE"]
