# src/edushield/common/enums.py
from __future__ import annotations

import enum


class Role(str, enum.Enum):
    ADMIN = "Admin"
    DEV_AUTH = "DevAuth"
    FACULTY = "Faculty"
    STUDENT = "Student"
    PARENT = "Parent"


class ExamType(str, enum.Enum):
    UNIT_TEST = "UnitTest"
    MID_TERM = "MidTerm"
    FINAL = "Final"
    ASSIGNMENT = "Assignment"
    LABORATORY = "Laboratory"
    PRESENTATION = "Presentation"
    CONTINUOUS_ASSESSMENT = "ContinuousAssessment"
    OTHER = "Other"


class FeeType(str, enum.Enum):
    TUITION = "Tuition"
    EXAM = "Exam"
    TRANSPORT = "Transport"
    LIBRARY = "Library"
    MISC = "Misc"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"
