# src/edushield/services/performances.py
"""
Exam results. Scores are stored and cached as ciphertext; plaintext only
exists in the ``StudentPerformanceOut`` handed back to callers.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushield.app_logger import get_logger
from edushield.cache import keys as cache_keys
from edushield.cache.store import CacheCoherentStore, CacheEntity
from edushield.common.errors import NotFoundError, ValidationError
from edushield.db.models import Student, StudentPerformance
from edushield.schemas.performance import (
    StudentPerformanceCreate,
    StudentPerformanceOut,
    StudentPerformancePatch,
    StudentPerformanceRecord,
)
from edushield.security.codec import EncryptionCodec

log = get_logger("performances")

_HUNDRED = Decimal("100")
_CENTS = Decimal("0.01")

# (lower bound in percent, letter), highest first
GRADE_BANDS = (
    (Decimal("90"), "A+"),
    (Decimal("85"), "A"),
    (Decimal("80"), "A-"),
    (Decimal("75"), "B+"),
    (Decimal("70"), "B"),
    (Decimal("65"), "B-"),
    (Decimal("60"), "C+"),
    (Decimal("55"), "C"),
    (Decimal("50"), "C-"),
    (Decimal("45"), "D+"),
    (Decimal("40"), "D"),
    (Decimal("35"), "D-"),
)


def percentage(score: Decimal, max_score: Optional[Decimal]) -> Optional[Decimal]:
    if max_score is None or max_score <= 0:
        return None
    return (score / max_score * _HUNDRED).quantize(_CENTS)


def letter_grade(pct: Optional[Decimal]) -> str:
    if pct is None:
        return "N/A"
    for floor, letter in GRADE_BANDS:
        if pct >= floor:
            return letter
    return "F"


def validate_score(score: Decimal, max_score: Optional[Decimal], exam_date: date) -> None:
    if exam_date > date.today():
        raise ValidationError("Exam date cannot be in the future", field="exam_date")
    if score < 0:
        raise ValidationError("Score cannot be negative", field="score")
    if max_score is not None:
        if max_score <= 0:
            raise ValidationError("Max score must be positive", field="max_score")
        if score > max_score:
            raise ValidationError("Score cannot exceed max score", field="score")


class StudentPerformanceService:
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        cache: CacheCoherentStore,
        codec: EncryptionCodec,
    ):
        self._sessionmaker = sessionmaker
        self._cache = cache
        self._codec = codec

    def _to_out(self, rec: StudentPerformanceRecord) -> StudentPerformanceOut:
        score = self._codec.decode(rec.encrypted_score)
        pct = percentage(score, rec.max_score)
        return StudentPerformanceOut(
            id=rec.id,
            student_id=rec.student_id,
            subject=rec.subject,
            exam_type=rec.exam_type,
            exam_date=rec.exam_date,
            score=score,
            max_score=rec.max_score,
            percentage=pct,
            grade=letter_grade(pct),
            exam_title=rec.exam_title,
            comments=rec.comments,
        )

    async def _invalidate(self, rec: StudentPerformanceRecord) -> None:
        await self._cache.invalidate_all(CacheEntity.PERFORMANCE, cache_keys.performance_keys(rec))

    # ---- writes ----
    async def create(self, data: StudentPerformanceCreate) -> StudentPerformanceOut:
        validate_score(data.score, data.max_score, data.exam_date)
        async with self._sessionmaker() as session, session.begin():
            if await session.get(Student, data.student_id) is None:
                raise NotFoundError("Student", student_id=data.student_id)
            row = StudentPerformance(
                student_id=data.student_id,
                subject=data.subject,
                exam_type=data.exam_type,
                exam_date=data.exam_date,
                encrypted_score=self._codec.encode(data.score),
                max_score=data.max_score,
                exam_title=data.exam_title,
                comments=data.comments,
            )
            session.add(row)
            await session.flush()
            rec = StudentPerformanceRecord.model_validate(row)
        await self._invalidate(rec)
        log.info("recorded %s result for student %s", rec.subject, rec.student_id)
        return self._to_out(rec)

    async def update(self, performance_id: uuid.UUID, patch: StudentPerformancePatch) -> StudentPerformanceOut:
        fields = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}
        async with self._sessionmaker() as session, session.begin():
            row = await session.get(StudentPerformance, performance_id)
            if row is None:
                raise NotFoundError("StudentPerformance", id=performance_id)

            score = fields.pop("score", None)
            current = score if score is not None else self._codec.decode(row.encrypted_score)
            validate_score(
                current,
                fields.get("max_score", row.max_score),
                fields.get("exam_date", row.exam_date),
            )
            for name, value in fields.items():
                setattr(row, name, value)
            if score is not None:
                row.encrypted_score = self._codec.encode(score)
            await session.flush()
            rec = StudentPerformanceRecord.model_validate(row)
        await self._invalidate(rec)
        return self._to_out(rec)

    async def delete(self, performance_id: uuid.UUID) -> None:
        async with self._sessionmaker() as session, session.begin():
            row = await session.get(StudentPerformance, performance_id)
            if row is None:
                raise NotFoundError("StudentPerformance", id=performance_id)
            rec = StudentPerformanceRecord.model_validate(row)
            await session.delete(row)
        await self._invalidate(rec)

    # ---- reads (read-through, ciphertext cached) ----
    async def _load(self, performance_id: uuid.UUID) -> Optional[StudentPerformanceRecord]:
        async with self._sessionmaker() as session:
            row = await session.get(StudentPerformance, performance_id)
            return StudentPerformanceRecord.model_validate(row) if row else None

    async def _load_for_student(self, student_id: uuid.UUID) -> List[StudentPerformanceRecord]:
        stmt = (
            sa.select(StudentPerformance)
            .where(StudentPerformance.student_id == student_id)
            .order_by(StudentPerformance.exam_date.desc(), StudentPerformance.subject)
        )
        async with self._sessionmaker() as session:
            return [StudentPerformanceRecord.model_validate(r) for r in (await session.execute(stmt)).scalars()]

    async def get_by_id(self, performance_id: uuid.UUID) -> Optional[StudentPerformanceOut]:
        rec = await self._cache.get_or_load(
            CacheEntity.PERFORMANCE,
            cache_keys.student_performance_key(performance_id),
            lambda: self._load(performance_id),
            StudentPerformanceRecord,
        )
        return self._to_out(rec) if rec else None

    async def list_for_student(self, student_id: uuid.UUID) -> List[StudentPerformanceOut]:
        records = await self._cache.get_or_load(
            CacheEntity.PERFORMANCE,
            cache_keys.student_performances_key(student_id),
            lambda: self._load_for_student(student_id),
            List[StudentPerformanceRecord],
        )
        return [self._to_out(r) for r in records or []]
