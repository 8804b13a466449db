# tests/conftest.py
"""
Shared fixtures: an in-memory SQLite database per test, an in-memory cache
backend (plus broken variants for fail-open tests), a codec, and small
factories for seeding rows.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest
from sqlalchemy.pool import StaticPool

from edushield.cache.store import CacheCoherentStore, CacheEntity
from edushield.common.enums import Role
from edushield.common.errors import CacheBackendError
from edushield.db.base import Base
from edushield.db.models import Faculty, Guardian, Student, User
from edushield.db.session import make_engine, make_sessionmaker
from edushield.security.codec import EncryptionCodec

TEST_SECRET = "unit-test-secret-for-edushield-codec"

TTLS = {
    CacheEntity.STUDENT: 900,
    CacheEntity.PERFORMANCE: 600,
    CacheEntity.USER: 1200,
}


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    """Send test logs to stdout so they show up under pytest -s."""
    root = logging.getLogger()
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio
@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


# ==============================================================
# Database
# ==============================================================

@pytest.fixture
async def engine():
    eng = make_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return make_sessionmaker(engine)


# ==============================================================
# Cache backends
# ==============================================================

class FakeCacheBackend:
    """Dict-backed CacheBackend that records every call."""

    def __init__(self) -> None:
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, int] = {}
        self.calls: List[Tuple[str, str]] = []

    async def get(self, key: str) -> Optional[bytes]:
        self.calls.append(("get", key))
        return self.data.get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self.calls.append(("set", key))
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        self.data.pop(key, None)


class FailingCacheBackend(FakeCacheBackend):
    """Raises on the operations named in ``failing``; behaves normally otherwise."""

    def __init__(self, failing=("get", "set", "delete")) -> None:
        super().__init__()
        self.failing = set(failing)

    async def get(self, key: str) -> Optional[bytes]:
        if "get" in self.failing:
            raise CacheBackendError("get", key, ConnectionError("connection refused"))
        return await super().get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if "set" in self.failing:
            raise CacheBackendError("set", key, ConnectionError("connection refused"))
        await super().set(key, value, ttl_seconds)

    async def delete(self, key: str) -> None:
        if "delete" in self.failing:
            raise CacheBackendError("delete", key, ConnectionError("connection refused"))
        await super().delete(key)


class SlowCacheBackend(FakeCacheBackend):
    async def get(self, key: str) -> Optional[bytes]:
        await asyncio.sleep(1.0)
        return await super().get(key)


@pytest.fixture
def cache_backend() -> FakeCacheBackend:
    return FakeCacheBackend()


@pytest.fixture
def cache(cache_backend) -> CacheCoherentStore:
    return CacheCoherentStore(cache_backend, ttls=TTLS, op_timeout=1.0)


@pytest.fixture
def codec() -> EncryptionCodec:
    return EncryptionCodec(TEST_SECRET)


# ==============================================================
# Seed factories
# ==============================================================

def at(minutes: int) -> datetime:
    """A fixed, ordered timestamp for assigned_date values."""
    return datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)


@pytest.fixture
def make_user(sessionmaker):
    async def _make(role: Role = Role.PARENT, email: Optional[str] = None) -> User:
        async with sessionmaker() as session, session.begin():
            user = User(
                email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
                full_name="Test User",
                role=role,
                is_active=True,
            )
            session.add(user)
        return user

    return _make


@pytest.fixture
def make_guardian(sessionmaker):
    async def _make(user_id: Optional[uuid.UUID] = None, first_name: str = "Gina") -> Guardian:
        async with sessionmaker() as session, session.begin():
            guardian = Guardian(
                user_id=user_id,
                first_name=first_name,
                last_name="Guardian",
                email=f"guardian-{uuid.uuid4().hex[:8]}@example.com",
            )
            session.add(guardian)
        return guardian

    return _make


@pytest.fixture
def make_faculty(sessionmaker):
    async def _make(user_id: Optional[uuid.UUID] = None) -> Faculty:
        async with sessionmaker() as session, session.begin():
            faculty = Faculty(
                user_id=user_id,
                first_name="Frank",
                last_name="Faculty",
                email=f"faculty-{uuid.uuid4().hex[:8]}@example.com",
                department="Science",
            )
            session.add(faculty)
        return faculty

    return _make


@pytest.fixture
def make_student(sessionmaker):
    async def _make(
        primary_guardian_id: Optional[uuid.UUID] = None,
        owner_user_id: Optional[uuid.UUID] = None,
        last_name: str = "Student",
    ) -> Student:
        tag = uuid.uuid4().hex[:8]
        async with sessionmaker() as session, session.begin():
            student = Student(
                first_name="Sam",
                last_name=last_name,
                email=f"student-{tag}@example.com",
                roll_number=f"R-{tag}",
                grade="10",
                section="A",
                owner_user_id=owner_user_id,
                primary_guardian_id=primary_guardian_id,
            )
            session.add(student)
        return student

    return _make
