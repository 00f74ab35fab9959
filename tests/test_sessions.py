"""Session authority — login, token checks and expiry."""

from datetime import timedelta

import pytest
import sqlalchemy as sa

from storefront.auth.model import AdminSession, User
from storefront.auth.passwords import hash_password
from storefront.auth.service import SessionAuthority
from storefront.common.database import utcnow
from storefront.common.errors import InvalidCredentials, InvalidPayload, Unauthorized

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, count_rows


@pytest.mark.asyncio
async def test_login_returns_token_bound_to_admin(authority, clock):
    result = await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert len(result.token) == 48
    assert result.email == ADMIN_EMAIL
    assert result.expires_at == clock.now + timedelta(days=7)

    identity = await authority.authorize(result.token)
    assert identity.user_id == result.user_id
    assert identity.email == ADMIN_EMAIL


@pytest.mark.asyncio
async def test_scenario_c_wrong_password_creates_no_session(authority, session_factory):
    with pytest.raises(InvalidCredentials):
        await authority.login(ADMIN_EMAIL, "wrong")
    assert await count_rows(session_factory, AdminSession) == 0


@pytest.mark.asyncio
async def test_unknown_email_is_invalid_credentials(authority, session_factory):
    with pytest.raises(InvalidCredentials):
        await authority.login("nobody@example.com", ADMIN_PASSWORD)
    assert await count_rows(session_factory, AdminSession) == 0


@pytest.mark.asyncio
async def test_non_admin_user_cannot_log_in(authority, session_factory):
    async with session_factory() as session:
        async with session.begin():
            session.add(User(
                email="shopper@example.com",
                password_hash=hash_password("secret", 4),
                role="customer",
                created_at=utcnow(),
            ))
    with pytest.raises(InvalidCredentials):
        await authority.login("shopper@example.com", "secret")


@pytest.mark.asyncio
@pytest.mark.parametrize("email,password", [("", "x"), (ADMIN_EMAIL, ""), (None, None)])
async def test_login_requires_both_fields(authority, email, password):
    with pytest.raises(InvalidPayload):
        await authority.login(email, password)


@pytest.mark.asyncio
async def test_multiple_sessions_per_user(authority):
    first = await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    second = await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert first.token != second.token
    assert (await authority.authorize(first.token)).user_id == (await authority.authorize(second.token)).user_id


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "deadbeef", "0" * 48])
async def test_missing_or_unknown_token_is_unauthorized(authority, token):
    with pytest.raises(Unauthorized) as exc_info:
        await authority.authorize(token)
    assert exc_info.value.message == "Unauthorized."


@pytest.mark.asyncio
async def test_token_expires_at_its_deadline(authority, clock):
    result = await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    clock.advance(timedelta(days=7) - timedelta(seconds=1))
    await authority.authorize(result.token)

    clock.advance(timedelta(seconds=1))
    with pytest.raises(Unauthorized):
        await authority.authorize(result.token)


@pytest.mark.asyncio
async def test_scenario_d_forced_expiry(session_factory):
    authority = SessionAuthority(session_factory, bcrypt_rounds=4)
    result = await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    await authority.authorize(result.token)

    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                sa.update(AdminSession)
                .where(AdminSession.token == result.token)
                .values(expires_at=utcnow() - timedelta(minutes=1))
            )

    with pytest.raises(Unauthorized):
        await authority.authorize(result.token)


@pytest.mark.asyncio
async def test_prune_expired_removes_only_dead_sessions(authority, clock, session_factory):
    await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    clock.advance(timedelta(days=3))
    live = await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    clock.advance(timedelta(days=5))
    assert await authority.prune_expired() == 1
    assert await count_rows(session_factory, AdminSession) == 1
    await authority.authorize(live.token)


@pytest.mark.asyncio
async def test_login_prunes_expired_sessions(authority, clock, session_factory):
    await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    clock.advance(timedelta(days=8))
    await authority.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert await count_rows(session_factory, AdminSession) == 1
