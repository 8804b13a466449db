# edushield/schemas/student_guardian.py
from __future__ import annotations
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from pydantic import Field
from edushield.schemas.base import APIModel


class StudentGuardianBase(APIModel):
    guardian_id: UUID = Field(...)
    student_id: UUID = Field(...)
    relationship_label: str = Field("Parent", max_length=50)
    is_primary_contact: bool = False
    is_authorized_pickup: bool = True
    is_emergency_contact: bool = True
    notes: Optional[str] = None


class StudentGuardianCreate(StudentGuardianBase):
    # Defaults to "now"; explicit values are accepted for imports.
    assigned_date: Optional[datetime] = None


class StudentGuardianPatch(APIModel):
    relationship_label: Optional[str] = None
    is_primary_contact: Optional[bool] = None
    is_authorized_pickup: Optional[bool] = None
    is_emergency_contact: Optional[bool] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class BulkStudentGuardianCreate(APIModel):
    guardian_id: UUID
    student_ids: List[UUID] = Field(..., min_length=1)
    relationship_label: str = "Parent"
    is_primary_contact: bool = False
    is_authorized_pickup: bool = True
    is_emergency_contact: bool = True
    notes: Optional[str] = None


class StudentGuardianOut(StudentGuardianBase):
    is_active: bool
    assigned_date: datetime
