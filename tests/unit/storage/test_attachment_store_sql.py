from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from channel_agent.channels.models import Channel
from channel_agent.storage.attachments import AttachmentRecord, LinkState, SqlAttachmentStore

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


@pytest.mark.asyncio
async def test_create_always_starts_unlinked():
    session = AsyncMock()
    record = AttachmentRecord(
        id="att_1",
        organization_id="org_1",
        ingested_by_user_id="user_1",
        source_channel=Channel.WHATSAPP,
        storage_key="org_1/ab/abc.pdf",
        mime_type="application/pdf",
        filename="permit.pdf",
        byte_size=12,
        sha256="abc",
        link_state=LinkState.LINKED,
    )

    with patch("channel_agent.storage.attachments.get_db_session", _fake_session(session)):
        await SqlAttachmentStore().create(record)

    sql = str(session.execute.call_args.args[0])
    assert "'unlinked'" in sql
    assert session.execute.call_args.args[1]["channel"] == "whatsapp"


@pytest.mark.asyncio
async def test_get_maps_row():
    session = AsyncMock()
    session.execute.return_value = _returning(
        SimpleNamespace(
            id="att_1",
            organization_id="org_1",
            ingested_by_user_id="user_1",
            source_channel="email",
            storage_key="org_1/ab/abc.pdf",
            mime_type="application/pdf",
            filename="permit.pdf",
            byte_size=12,
            sha256="abc",
            link_state="link_pending",
            linked_entity_type="project",
            linked_entity_id="proj_1",
            link_confidence=0.7,
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
    )

    with patch("channel_agent.storage.attachments.get_db_session", _fake_session(session)):
        record = await SqlAttachmentStore().get("att_1")

    assert record.source_channel == Channel.EMAIL
    assert record.link_state == LinkState.LINK_PENDING
    assert record.linked_entity_id == "proj_1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "args", "guard"),
    [
        ("mark_link_pending", ("att_1", "project", "proj_1", 0.7), "link_state IN ('unlinked', 'link_pending')"),
        ("mark_linked", ("att_1", "user_1"), "link_state = 'link_pending'"),
        ("revert_to_unlinked", ("att_1",), "link_state = 'link_pending'"),
    ],
)
async def test_transitions_are_guarded_on_prior_state(method, args, guard):
    session = AsyncMock()
    session.execute.side_effect = [_returning(SimpleNamespace(id="att_1")), _returning(None)]
    store = SqlAttachmentStore()

    with patch("channel_agent.storage.attachments.get_db_session", _fake_session(session)):
        applied = await getattr(store, method)(*args)
        refused = await getattr(store, method)(*args)

    assert applied is True
    assert refused is False
    assert guard in str(session.execute.call_args_list[0].args[0])
