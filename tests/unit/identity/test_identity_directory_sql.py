from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from channel_agent.identity.directory import SqlIdentityDirectory
from channel_agent.identity.types import IdentityStatus, IdentityType
from channel_agent.kernel.errors import ConflictError, NotFoundError

pytestmark = pytest.mark.unit


def _fake_session(session):
    @asynccontextmanager
    async def fake_session():
        yield session

    return fake_session


def _returning(row):
    result = MagicMock()
    result.fetchone.return_value = row
    return result


def _identity_row(**overrides):
    values = {
        "id": "ident_1",
        "identity_type": "whatsapp_phone",
        "identifier": "15550001111",
        "user_id": "user_1",
        "organization_id": None,
        "status": "verified",
        "verified_by": "admin_api",
        "verified_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.asyncio
async def test_find_exact_queries_the_literal_identifier():
    session = AsyncMock()
    session.execute.return_value = _returning(_identity_row())

    with patch("channel_agent.identity.directory.get_db_session", _fake_session(session)):
        identity = await SqlIdentityDirectory().find_exact(IdentityType.WHATSAPP_PHONE, "15550001111")

    assert identity.is_verified
    assert session.execute.call_args.args[1] == {"identity_type": "whatsapp_phone", "identifier": "15550001111"}
    assert "lower(" not in str(session.execute.call_args.args[0]).lower()


@pytest.mark.asyncio
async def test_register_conflict_raises():
    session = AsyncMock()
    session.execute.return_value = _returning(None)

    with patch("channel_agent.identity.directory.get_db_session", _fake_session(session)):
        with pytest.raises(ConflictError):
            await SqlIdentityDirectory().register(IdentityType.EMAIL, "ops@example.com", "user_1")


@pytest.mark.asyncio
async def test_register_returns_unverified_identity():
    session = AsyncMock()
    session.execute.return_value = _returning(SimpleNamespace(id="ident_new"))

    with patch("channel_agent.identity.directory.get_db_session", _fake_session(session)):
        identity = await SqlIdentityDirectory().register(IdentityType.EMAIL, "ops@example.com", "user_1")

    assert identity.status == IdentityStatus.UNVERIFIED
    assert identity.id.startswith("ident_")


@pytest.mark.asyncio
async def test_set_status_on_unknown_identity():
    session = AsyncMock()
    session.execute.return_value = _returning(None)

    with patch("channel_agent.identity.directory.get_db_session", _fake_session(session)):
        with pytest.raises(NotFoundError):
            await SqlIdentityDirectory().set_status("ident_missing", IdentityStatus.REVOKED)


@pytest.mark.asyncio
async def test_set_status_records_verifier():
    session = AsyncMock()
    session.execute.return_value = _returning(_identity_row())

    with patch("channel_agent.identity.directory.get_db_session", _fake_session(session)):
        identity = await SqlIdentityDirectory().set_status("ident_1", IdentityStatus.VERIFIED, actor_id="admin_api")

    params = session.execute.call_args.args[1]
    assert params["verified"] is True
    assert params["actor_id"] == "admin_api"
    assert identity.verified_by == "admin_api"
