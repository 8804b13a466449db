"""Cache key contract.

These strings are shared with data already sitting in Redis; the format
must not change.
"""

from __future__ import annotations

from typing import Any, Iterable, List


def student_key(student_id: Any) -> str:
    return f"student_{student_id}"


def student_email_key(email: str) -> str:
    return f"student_email_{email}"


def student_roll_key(roll_number: str) -> str:
    return f"student_roll_{roll_number}"


def student_performance_key(performance_id: Any) -> str:
    return f"student_performance_{performance_id}"


def student_performances_key(student_id: Any) -> str:
    return f"student_performances_{student_id}"


def user_key(user_id: Any) -> str:
    return f"user_{user_id}"


def user_email_key(email: str) -> str:
    return f"user_email_{email}"


# ---------------------------------------------------------------------------
# Every key derivable from one entity snapshot
# ---------------------------------------------------------------------------

def student_keys(student: Any) -> List[str]:
    keys = [student_key(student.id)]
    if getattr(student, "email", None):
        keys.append(student_email_key(student.email))
    if getattr(student, "roll_number", None):
        keys.append(student_roll_key(student.roll_number))
    return keys


def performance_keys(performance: Any) -> List[str]:
    return [
        student_performance_key(performance.id),
        student_performances_key(performance.student_id),
    ]


def user_keys(user: Any) -> List[str]:
    keys = [user_key(user.id)]
    if getattr(user, "email", None):
        keys.append(user_email_key(user.email))
    return keys


def merge_keys(*groups: Iterable[str]) -> List[str]:
    """Union of key groups, first occurrence order kept."""
    seen: dict[str, None] = {}
    for group in groups:
        for key in group:
            seen.setdefault(key, None)
    return list(seen)
