# edushield/schemas/performance.py
from __future__ import annotations
from typing import Optional
from datetime import date
from decimal import Decimal
from uuid import UUID
from pydantic import Field
from edushield.common.enums import ExamType
from edushield.schemas.base import APIModel


class StudentPerformanceCreate(APIModel):
    student_id: UUID
    subject: str = Field(..., min_length=1, max_length=100)
    exam_type: ExamType
    exam_date: date
    score: Decimal
    max_score: Optional[Decimal] = None
    exam_title: Optional[str] = None
    comments: Optional[str] = None


class StudentPerformancePatch(APIModel):
    subject: Optional[str] = None
    exam_type: Optional[ExamType] = None
    exam_date: Optional[date] = None
    score: Optional[Decimal] = None
    max_score: Optional[Decimal] = None
    exam_title: Optional[str] = None
    comments: Optional[str] = None


class StudentPerformanceRecord(APIModel):
    """Row-shaped form kept in the cache; the score stays encrypted."""
    id: UUID
    student_id: UUID
    subject: str
    exam_type: ExamType
    exam_date: date
    encrypted_score: str
    max_score: Optional[Decimal] = None
    exam_title: Optional[str] = None
    comments: Optional[str] = None


class StudentPerformanceOut(APIModel):
    id: UUID
    student_id: UUID
    subject: str
    exam_type: ExamType
    exam_date: date
    score: Decimal
    max_score: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    grade: str = "N/A"
    exam_title: Optional[str] = None
    comments: Optional[str] = None
