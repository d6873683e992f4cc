"""Tests for owner resolution and guest profiles."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.auth.security import account_service
from gbegne.exceptions import InvalidUsernameError
from gbegne.schemas.schemas import AnonymousOwner, NoOwner, RegisteredOwner
from gbegne.services.identity import IdentityResolver, SessionContext, suggest_username


@pytest.mark.asyncio
async def test_same_username_returns_same_guest(db_session: AsyncSession):
    resolver = IdentityResolver()

    first = await resolver.continue_as_guest(db_session, "Marie")
    second = await resolver.continue_as_guest(db_session, "Marie")

    assert isinstance(first, AnonymousOwner)
    assert first.id == second.id
    assert first.username == "Marie"


@pytest.mark.asyncio
async def test_username_match_is_exact(db_session: AsyncSession):
    resolver = IdentityResolver()

    marie = await resolver.continue_as_guest(db_session, "Marie")
    lower = await resolver.continue_as_guest(db_session, "marie")
    padded = await resolver.continue_as_guest(db_session, "  Marie  ")

    assert marie.id != lower.id
    assert padded.id == marie.id


@pytest.mark.asyncio
async def test_concurrent_first_use_creates_one_profile(remote_session_maker):
    """Two simultaneous requests for a new username end up with one profile."""
    resolver = IdentityResolver()

    async def attempt():
        async with remote_session_maker() as session:
            return await resolver.continue_as_guest(session, "Kofi")

    first, second = await asyncio.gather(attempt(), attempt())
    assert first.id == second.id


@pytest.mark.asyncio
@pytest.mark.parametrize("username", ["", "   ", "A"])
async def test_short_usernames_rejected(db_session: AsyncSession, username: str):
    with pytest.raises(InvalidUsernameError):
        await IdentityResolver().continue_as_guest(db_session, username)


@pytest.mark.asyncio
async def test_current_owner_without_credentials(db_session: AsyncSession):
    owner = await IdentityResolver().current_owner(db_session)
    assert owner == NoOwner()


@pytest.mark.asyncio
async def test_current_owner_unknown_guest(db_session: AsyncSession):
    owner = await IdentityResolver().current_owner(db_session, guest_id="does-not-exist")
    assert isinstance(owner, NoOwner)


@pytest.mark.asyncio
async def test_current_owner_guest(db_session: AsyncSession):
    resolver = IdentityResolver()
    guest = await resolver.continue_as_guest(db_session, "Marie")

    owner = await resolver.current_owner(db_session, guest_id=guest.id)
    assert owner == guest


@pytest.mark.asyncio
async def test_registered_session_wins_over_guest(db_session: AsyncSession, mailer):
    resolver = IdentityResolver()
    guest = await resolver.continue_as_guest(db_session, "Marie")

    await account_service.register(db_session, "ama@example.com", "secret123")
    await account_service.confirm_email(db_session, "ama@example.com", mailer.tokens["ama@example.com"])
    token, _, user = await account_service.login(db_session, "ama@example.com", "secret123")
    await db_session.commit()

    owner = await resolver.current_owner(db_session, auth_token=token, guest_id=guest.id)
    assert owner == RegisteredOwner(id=user.id, email="ama@example.com")


@pytest.mark.asyncio
async def test_invalid_token_falls_back_to_guest(db_session: AsyncSession):
    resolver = IdentityResolver()
    guest = await resolver.continue_as_guest(db_session, "Marie")

    owner = await resolver.current_owner(db_session, auth_token="gbs_" + "0" * 32, guest_id=guest.id)
    assert owner == guest


def test_session_context_defaults():
    ctx = SessionContext()
    assert isinstance(ctx.owner, NoOwner)
    assert ctx.language.value == "french"


def test_suggest_username():
    name = suggest_username()
    assert 2 <= len(name) <= 50
    assert name[-1].isdigit()
