# edushield/schemas/student.py
from __future__ import annotations
from typing import Optional
from uuid import UUID
from pydantic import Field
from edushield.schemas.base import APIModel


class StudentBase(APIModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255)
    roll_number: str = Field(..., max_length=64)
    grade: Optional[str] = None
    section: Optional[str] = None
    owner_user_id: Optional[UUID] = None


class StudentCreate(StudentBase):
    pass


class StudentPatch(APIModel):
    # primary_guardian_id is deliberately absent: only guardian assignment
    # operations move it.
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    roll_number: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None
    owner_user_id: Optional[UUID] = None


class StudentOut(StudentBase):
    id: UUID
    primary_guardian_id: Optional[UUID] = None
