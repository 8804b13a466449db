# src/edushield/services/users.py
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
from edushield.db.models import User
from edushield.schemas.user import UserOut, UserPatch

log = get_logger("users")


class UserService:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], cache: CacheCoherentStore):
        self._sessionmaker = sessionmaker
        self._cache = cache

    async def _load_one(self, *criteria) -> Optional[UserOut]:
        async with self._sessionmaker() as session:
            row = (await session.execute(sa.select(User).where(*criteria))).scalar_one_or_none()
            return UserOut.model_validate(row) if row else None

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[UserOut]:
        return await self._cache.get_or_load(
            CacheEntity.USER, cache_keys.user_key(user_id), lambda: self._load_one(User.id == user_id), UserOut
        )

    async def get_by_email(self, email: str) -> Optional[UserOut]:
        return await self._cache.get_or_load(
            CacheEntity.USER, cache_keys.user_email_key(email), lambda: self._load_one(User.email == email), UserOut
        )

    async def _mutate(self, user_id: uuid.UUID, **values) -> UserOut:
        async with self._sessionmaker() as session, session.begin():
            row = await session.get(User, user_id)
            if row is None:
                raise NotFoundError("User", user_id=user_id)
            before = UserOut.model_validate(row)
            for name, value in values.items():
                setattr(row, name, value)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError("A user with this email already exists") from exc
            after = UserOut.model_validate(row)
        await self._cache.invalidate_all(
            CacheEntity.USER, cache_keys.merge_keys(cache_keys.user_keys(before), cache_keys.user_keys(after))
        )
        return after

    async def update(self, user_id: uuid.UUID, patch: UserPatch) -> UserOut:
        fields = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}
        return await self._mutate(user_id, **fields)

    async def deactivate(self, user_id: uuid.UUID) -> UserOut:
        out = await self._mutate(user_id, is_active=False)
        log.info("deactivated user %s", user_id)
        return out
