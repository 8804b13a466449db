from __future__ import annotations
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from pydantic import Field
from edushield.schemas.base import APIModel


class StudentFacultyCreate(APIModel):
    faculty_id: UUID
    student_id: UUID
    subject: Optional[str] = None
    academic_year: Optional[str] = None
    semester: Optional[str] = None
    notes: Optional[str] = None


class BulkStudentFacultyCreate(APIModel):
    faculty_id: UUID
    student_ids: List[UUID] = Field(..., min_length=1)
    subject: Optional[str] = None
    academic_year: Optional[str] = None
    semester: Optional[str] = None
    notes: Optional[str] = None


class StudentFacultyOut(APIModel):
    faculty_id: UUID
    student_id: UUID
    assigned_date: datetime
    is_active: bool
    subject: Optional[str] = None
    academic_year: Optional[str] = None
    semester: Optional[str] = None
    notes: Optional[str] = None
