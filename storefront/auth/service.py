"""Admin session authority.

Login checks a bcrypt hash and mints an opaque random token bound to the
admin's user id with a fixed lifetime. ``authorize`` is a read-only check of
that token; expired rows stay in the table until ``prune_expired`` removes
them, which login does opportunistically.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import sqlalchemy as sa
from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..common.database import utcnow
from ..common.errors import InvalidCredentials, InvalidPayload, Unauthorized
from .model import ROLE_ADMIN, AdminSession, User
from .passwords import hash_password, verify_password

_logger = logging.getLogger(__name__)

ADMIN_LOGINS = Counter("storefront_admin_logins_total", "Admin login attempts", ["outcome"])

TOKEN_BYTES = 24


@dataclass(frozen=True)
class AdminIdentity:
    user_id: int
    email: str


@dataclass(frozen=True)
class LoginResult:
    token: str
    user_id: int
    email: str
    expires_at: datetime


class SessionAuthority:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utcnow,
        bcrypt_rounds: int = 10,
    ):
        self._session_factory = session_factory
        self._ttl = ttl
        self._clock = clock
        # Compared against when the email is unknown so both failure paths hash
        self._dummy_hash = hash_password(secrets.token_hex(8), bcrypt_rounds)

    async def login(self, email: Any, password: Any) -> LoginResult:
        if not isinstance(email, str) or not email or not isinstance(password, str) or not password:
            raise InvalidPayload("Email and password required.")

        async with self._session_factory() as session:
            res = await session.execute(
                sa.select(User).where(User.email == email, User.role == ROLE_ADMIN)
            )
            user = res.scalar_one_or_none()

        password_hash = user.password_hash if user is not None else self._dummy_hash
        if not verify_password(password, password_hash) or user is None:
            ADMIN_LOGINS.labels(outcome="rejected").inc()
            _logger.info("Admin login rejected")
            raise InvalidCredentials()

        now = self._clock()
        token = secrets.token_hex(TOKEN_BYTES)
        expires_at = now + self._ttl
        async with self._session_factory() as session:
            async with session.begin():
                session.add(AdminSession(token=token, user_id=user.id, expires_at=expires_at, created_at=now))

        ADMIN_LOGINS.labels(outcome="accepted").inc()
        _logger.info("Admin login | user_id=%s expires_at=%s", user.id, expires_at.isoformat())
        await self.prune_expired()
        return LoginResult(token=token, user_id=user.id, email=user.email, expires_at=expires_at)

    async def authorize(self, token: Optional[str]) -> AdminIdentity:
        if not token:
            raise Unauthorized()
        async with self._session_factory() as session:
            res = await session.execute(
                sa.select(AdminSession.user_id, User.email)
                .join(User, User.id == AdminSession.user_id)
                .where(AdminSession.token == token, AdminSession.expires_at > self._clock())
            )
            row = res.first()
        if row is None:
            raise Unauthorized()
        return AdminIdentity(user_id=row[0], email=row[1])

    async def prune_expired(self) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                res = await session.execute(
                    sa.delete(AdminSession).where(AdminSession.expires_at <= self._clock())
                )
                removed = res.rowcount or 0
        if removed:
            _logger.info("Pruned expired admin sessions | count=%s", removed)
        return removed
