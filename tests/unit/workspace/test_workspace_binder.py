from __future__ import annotations

from datetime import timedelta

import pytest

from channel_agent.channels.models import Channel
from channel_agent.identity.types import ChannelIdentity, IdentityStatus, IdentityType
from channel_agent.kernel.errors import AmbiguousWorkspaceError, NoWorkspaceError
from channel_agent.sessions.models import StoredPendingAction
from channel_agent.storage.attachments import AttachmentRecord, LinkState
from channel_agent.workspace.binder import ResolutionMethod, WorkspaceBinder
from channel_agent.workspace.commands import WorkspaceCommandType, parse_workspace_command
from tests.support.fakes import InMemoryAttachmentStore, InMemorySessionStore, InMemoryWorkspaceDirectory
from tests.support.harness import message

pytestmark = pytest.mark.unit


@pytest.fixture
def workspaces(fake_clock):
    return InMemoryWorkspaceDirectory(clock=fake_clock.now)


@pytest.fixture
def sessions(fake_clock):
    return InMemorySessionStore(clock=fake_clock.now)


@pytest.fixture
def attachments():
    return InMemoryAttachmentStore()


@pytest.fixture
def binder(workspaces, sessions, attachments, fake_clock):
    return WorkspaceBinder(workspaces, sessions, attachments, product_name="Asset Hub", clock=fake_clock.now)


def _identity(organization_id: str | None = None) -> ChannelIdentity:
    return ChannelIdentity(
        id="ident_1",
        identity_type=IdentityType.WHATSAPP_PHONE,
        identifier="15550001111",
        user_id="user_1",
        organization_id=organization_id,
        status=IdentityStatus.VERIFIED,
    )


# =============================================================================
# Command parsing
# =============================================================================


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("bind code 123456", WorkspaceCommandType.BIND_CODE),
        ("  BIND CODE 123456 ", WorkspaceCommandType.BIND_CODE),
        ("code 654321", WorkspaceCommandType.BIND_CODE),
        ("/workspace", WorkspaceCommandType.WORKSPACE_STATUS),
        ("switch workspace", WorkspaceCommandType.SWITCH_WORKSPACE),
    ],
)
def test_parse_workspace_command(text, expected):
    command = parse_workspace_command(text)
    assert command is not None
    assert command.type == expected


@pytest.mark.parametrize("text", ["bind code 12345", "bind code abcdef", "my code 123456 please", "workspace"])
def test_non_commands_are_ignored(text):
    assert parse_workspace_command(text) is None


# =============================================================================
# Resolution order
# =============================================================================


@pytest.mark.asyncio
async def test_identifier_scoped_org_wins(binder, workspaces):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "viewer")
    workspaces.defaults[("user_1", Channel.WHATSAPP)] = "org_1"

    resolution = await binder.resolve(_identity("org_2"), message("hi"))

    assert resolution.organization_id == "org_2"
    assert resolution.role == "viewer"
    assert resolution.method == ResolutionMethod.IDENTIFIER_SCOPED


@pytest.mark.asyncio
async def test_identifier_scoped_org_without_membership_falls_through(binder, workspaces):
    workspaces.add_membership("user_1", "org_1", "editor")

    resolution = await binder.resolve(_identity("org_gone"), message("hi"))

    assert resolution.organization_id == "org_1"
    assert resolution.method == ResolutionMethod.SINGLE_MEMBERSHIP


@pytest.mark.asyncio
async def test_channel_default_beats_thread_binding(binder, workspaces, sessions):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "viewer")
    workspaces.defaults[("user_1", Channel.WHATSAPP)] = "org_2"
    await sessions.ensure_session("user_1", "org_1", Channel.WHATSAPP, "15550001111", "15550001111")

    resolution = await binder.resolve(_identity(), message("hi"))

    assert resolution.organization_id == "org_2"
    assert resolution.method == ResolutionMethod.CHANNEL_DEFAULT


@pytest.mark.asyncio
async def test_thread_binding_is_used_when_still_a_member(binder, workspaces, sessions):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "viewer")
    await sessions.ensure_session("user_1", "org_2", Channel.WHATSAPP, "15550001111", "15550001111")

    resolution = await binder.resolve(_identity(), message("hi"))

    assert resolution.organization_id == "org_2"
    assert resolution.method == ResolutionMethod.THREAD_BINDING


@pytest.mark.asyncio
async def test_thread_binding_to_a_former_org_is_ignored(binder, workspaces, sessions):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_3", "editor")
    await sessions.ensure_session("user_1", "org_2", Channel.WHATSAPP, "15550001111", "15550001111")

    with pytest.raises(AmbiguousWorkspaceError):
        await binder.resolve(_identity(), message("hi"))


@pytest.mark.asyncio
async def test_no_membership_raises_no_workspace(binder):
    with pytest.raises(NoWorkspaceError) as exc_info:
        await binder.resolve(_identity(), message("hi"))

    assert "Asset Hub" in exc_info.value.message


@pytest.mark.asyncio
async def test_ambiguous_message_reveals_nothing(binder, workspaces):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "viewer")

    with pytest.raises(AmbiguousWorkspaceError) as exc_info:
        await binder.resolve(_identity(), message("hi"))

    text = exc_info.value.message
    assert "org_1" not in text and "org_2" not in text


# =============================================================================
# Commands
# =============================================================================


@pytest.mark.asyncio
async def test_bind_code_binds_thread(binder, workspaces, sessions):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "viewer")
    workspaces.add_code("123456", "user_1", "org_2")

    reply = await binder.handle_command(_identity(), message("bind code 123456"))

    assert reply == binder.responses.binding_success("binding code")
    assert workspaces.codes["123456"].used_at is not None
    assert workspaces.switches == [
        {"user_id": "user_1", "from": None, "to": "org_2", "channel": Channel.WHATSAPP, "method": "binding_code"}
    ]
    resolution = await binder.resolve(_identity(), message("hi"))
    assert resolution.organization_id == "org_2"
    assert resolution.method == ResolutionMethod.THREAD_BINDING


@pytest.mark.asyncio
async def test_rebind_clears_pointers_and_pending(binder, workspaces, sessions, fake_clock):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "viewer")
    session_id = await sessions.ensure_session("user_1", "org_1", Channel.WHATSAPP, "15550001111", "15550001111")
    await sessions.update_context(session_id, {"last_project_id": "proj_1"})
    await sessions.set_pending_action(
        session_id,
        StoredPendingAction(
            id="pact_1",
            name="create_work_order",
            payload={"action": "create_work_order", "description": "x"},
            prompt="Create?",
            organization_id="org_1",
            created_at=fake_clock.now(),
        ),
    )
    workspaces.add_code("123456", "user_1", "org_2")

    await binder.handle_command(_identity(), message("bind code 123456"))

    state = sessions.sessions[session_id]
    assert state.organization_id == "org_2"
    assert state.pointers.last_project_id is None
    assert state.pending_action is None
    assert workspaces.switches[0]["from"] == "org_1"


async def _park_link(sessions, attachments, session_id: str, created_at) -> None:
    await attachments.create(
        AttachmentRecord(
            id="att_1",
            organization_id="org_1",
            ingested_by_user_id="user_1",
            source_channel=Channel.WHATSAPP,
            storage_key="org_1/abc.pdf",
            mime_type="application/pdf",
            filename="invoice.pdf",
            byte_size=10,
            sha256="abc",
        )
    )
    await attachments.mark_link_pending("att_1", "project", "proj_1", 0.8)
    await sessions.set_pending_action(
        session_id,
        StoredPendingAction(
            id="pact_1",
            name="link_attachment",
            payload={"action": "link_attachment", "attachment_id": "att_1", "project_id": "proj_1"},
            prompt="Link?",
            organization_id="org_1",
            created_at=created_at,
        ),
    )


@pytest.mark.asyncio
async def test_rebind_unlinks_attachment_waiting_on_confirmation(binder, workspaces, sessions, attachments, fake_clock):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "viewer")
    session_id = await sessions.ensure_session("user_1", "org_1", Channel.WHATSAPP, "15550001111", "15550001111")
    await _park_link(sessions, attachments, session_id, fake_clock.now())
    workspaces.add_code("123456", "user_1", "org_2")

    await binder.handle_command(_identity(), message("bind code 123456"))

    assert sessions.sessions[session_id].pending_action is None
    record = attachments.records["att_1"]
    assert record.link_state == LinkState.UNLINKED
    assert record.linked_entity_id is None


@pytest.mark.asyncio
async def test_entering_another_org_unlinks_attachment_waiting_on_confirmation(
    binder, sessions, attachments, fake_clock
):
    session_id = await sessions.ensure_session("user_1", "org_1", Channel.WHATSAPP, "15550001111", "15550001111")
    await _park_link(sessions, attachments, session_id, fake_clock.now())

    entered = await binder.enter_session("user_1", "org_2", message("hi"))

    assert entered == session_id
    assert sessions.sessions[session_id].organization_id == "org_2"
    assert sessions.sessions[session_id].pending_action is None
    assert attachments.records["att_1"].link_state == LinkState.UNLINKED


@pytest.mark.asyncio
async def test_entering_same_org_keeps_pending_link(binder, sessions, attachments, fake_clock):
    session_id = await sessions.ensure_session("user_1", "org_1", Channel.WHATSAPP, "15550001111", "15550001111")
    await _park_link(sessions, attachments, session_id, fake_clock.now())

    await binder.enter_session("user_1", "org_1", message("yes"))

    assert sessions.sessions[session_id].pending_action is not None
    assert attachments.records["att_1"].link_state == LinkState.LINK_PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize("case", ["unknown", "expired", "used", "other_user", "other_channel", "no_role"])
async def test_bind_code_rejections(binder, workspaces, fake_clock, case):
    workspaces.add_membership("user_1", "org_1", "editor")
    if case == "expired":
        workspaces.add_code("123456", "user_1", "org_1", ttl=timedelta(minutes=-1))
    elif case == "used":
        workspaces.add_code("123456", "user_1", "org_1")
        await workspaces.mark_binding_code_used("123456", Channel.WHATSAPP, "15550002222")
    elif case == "other_user":
        workspaces.add_code("123456", "user_2", "org_1")
    elif case == "other_channel":
        workspaces.add_code("123456", "user_1", "org_1", channel=Channel.EMAIL)
    elif case == "no_role":
        workspaces.add_code("123456", "user_1", "org_9")

    reply = await binder.handle_command(_identity(), message("bind code 123456"))

    assert reply == binder.responses.binding_failed
    assert workspaces.switches == []


@pytest.mark.asyncio
async def test_bind_code_is_single_use(binder, workspaces):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_code("123456", "user_1", "org_1")

    first = await binder.handle_command(_identity(), message("bind code 123456"))
    second = await binder.handle_command(_identity(), message("bind code 123456"))

    assert first == binder.responses.binding_success("binding code")
    assert second == binder.responses.binding_failed


@pytest.mark.asyncio
async def test_workspace_status_reports_role_only(binder, workspaces):
    workspaces.add_membership("user_1", "org_1", "reviewer")

    reply = await binder.handle_command(_identity(), message("/workspace"))

    assert reply == binder.responses.bound("reviewer")
    assert "org_1" not in reply


@pytest.mark.asyncio
async def test_workspace_status_when_unbound(binder, workspaces):
    workspaces.add_membership("user_1", "org_1", "editor")
    workspaces.add_membership("user_1", "org_2", "editor")

    reply = await binder.handle_command(_identity(), message("/workspace"))

    assert reply == binder.responses.not_bound


@pytest.mark.asyncio
async def test_switch_workspace_points_to_binding_code(binder):
    reply = await binder.handle_command(_identity(), message("switch workspace"))

    assert reply == binder.responses.ambiguous


@pytest.mark.asyncio
async def test_plain_text_is_not_a_command(binder):
    assert await binder.handle_command(_identity(), message("what's the status?")) is None
