from __future__ import annotations

from datetime import timedelta

import pytest

from channel_agent.agent import responses
from channel_agent.agent.actions import (
    CreateWorkOrderPayload,
    GenerateDataroomPayload,
    LinkAttachmentPayload,
    RespondToRequestPayload,
)
from channel_agent.agent.confirmation import ConfirmationGate
from channel_agent.agent.context import ConversationContext, TurnState
from channel_agent.channels.models import Channel
from channel_agent.operations.models import OperationId
from channel_agent.storage.attachments import AttachmentRecord, LinkState
from tests.support.fakes import RecordingAuditLog

pytestmark = pytest.mark.unit


async def _context(harness, organization_id: str = "org_1") -> ConversationContext:
    session_id = await harness.sessions.ensure_session(
        "user_1", "org_1", Channel.WHATSAPP, "15550001111", "15550001111"
    )
    state = await harness.sessions.get_session(session_id)
    return ConversationContext(
        session_id=session_id,
        user_id="user_1",
        organization_id=organization_id,
        role="editor",
        channel=Channel.WHATSAPP,
        identifier="15550001111",
        thread_id=state.thread_id,
        pointers=state.pointers,
        pending_action=state.pending_action,
    )


async def _reload(harness, context: ConversationContext) -> ConversationContext:
    state = await harness.sessions.get_session(context.session_id)
    context.pending_action = state.pending_action
    return context


async def _pending_attachment(harness, attachment_id: str = "att_1") -> None:
    await harness.attachments.create(
        AttachmentRecord(
            id=attachment_id,
            organization_id="org_1",
            ingested_by_user_id="user_1",
            source_channel=Channel.WHATSAPP,
            storage_key="org_1/ab/abc.pdf",
            mime_type="application/pdf",
            filename="invoice.pdf",
            byte_size=12,
            sha256="abc",
        )
    )
    await harness.attachments.mark_link_pending(attachment_id, "project", "proj_1", 0.7)


PAYLOADS = [
    CreateWorkOrderPayload(description="inverter repair"),
    GenerateDataroomPayload(project_id="proj_1", project_name="Solar Farm A"),
    LinkAttachmentPayload(attachment_id="att_1", project_id="proj_1", project_name="Solar Farm A", confidence=0.7),
    RespondToRequestPayload(request_id="req_1", request_title="Q3 diligence"),
]


@pytest.mark.asyncio
async def test_request_stores_prompt_with_instructions(harness):
    context = await _context(harness)

    response = await harness.gate.request(
        context,
        CreateWorkOrderPayload(description="inverter repair"),
        'Create a work order with description:\n"inverter repair"',
        message="Please confirm to create this work order.",
    )

    stored = harness.sessions.only_session().pending_action
    assert stored.prompt.endswith(responses.CONFIRM_INSTRUCTIONS)
    assert response.confirmation_prompt == stored.prompt
    assert stored.payload == {
        "action": "create_work_order",
        "description": "inverter repair",
        "project_id": None,
        "site_id": None,
        "asset_id": None,
    }
    assert stored.created_at == harness.clock.now()


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", PAYLOADS, ids=lambda p: p.action.value)
async def test_negative_reply_cancels_every_action_type(harness, payload):
    await _pending_attachment(harness)
    context = await _context(harness)
    await harness.gate.request(context, payload, "Do it?", message="Please confirm.")

    response = await harness.gate.resolve(context, TurnState(), "cancel")

    assert response.message == responses.ACTION_CANCELLED
    assert harness.sessions.only_session().pending_action is None
    assert harness.operations.mutating_calls(harness.registry) == []
    if isinstance(payload, LinkAttachmentPayload):
        assert harness.attachments.records["att_1"].link_state == LinkState.UNLINKED


@pytest.mark.asyncio
async def test_unclear_reply_keeps_stored_action_byte_for_byte(harness):
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[1], 'Generate a dataroom for "Solar Farm A"?', message="Confirm.")
    before = harness.sessions.only_session().pending_action.model_dump_json()

    response = await harness.gate.resolve(context, TurnState(), "which one was that?")

    assert harness.sessions.only_session().pending_action.model_dump_json() == before
    assert response.message == responses.REPROMPT
    assert response.confirmation_prompt == harness.sessions.only_session().pending_action.prompt


@pytest.mark.asyncio
async def test_second_resolver_loses_the_race(harness):
    harness.operations.responses[OperationId.DATAROOMS_GENERATE] = {"dataroom_id": "dr_9"}
    first = await _context(harness)
    await harness.gate.request(first, PAYLOADS[1], "Generate?", message="Confirm.")
    second = await _reload(harness, await _context(harness))

    winner = await harness.gate.resolve(await _reload(harness, first), TurnState(), "yes")
    loser = await harness.gate.resolve(second, TurnState(), "yes")

    assert "dr_9" in winner.message
    assert loser.message == responses.ALREADY_HANDLED
    assert len(harness.operations.calls_for(OperationId.DATAROOMS_GENERATE)) == 1


@pytest.mark.asyncio
async def test_pending_from_another_workspace_is_cancelled(harness):
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[0], "Create?", message="Confirm.")
    other = await _reload(harness, await _context(harness, organization_id="org_2"))

    response = await harness.gate.resolve(other, TurnState(), "yes")

    assert response.success is False
    assert response.message == responses.WRONG_WORKSPACE_CANCELLED
    assert harness.operations.calls == []
    assert harness.sessions.only_session().pending_action is None
    assert harness.audit.events[0]["metadata"]["reason"] == "workspace_changed"


@pytest.mark.asyncio
async def test_corrupt_payload_is_cancelled_not_executed(harness):
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[0], "Create?", message="Confirm.")
    harness.sessions.only_session().pending_action.payload = {"action": "launch_rocket"}

    response = await harness.gate.resolve(await _reload(harness, context), TurnState(), "yes")

    assert response.message == responses.GENERIC_FAILURE
    assert harness.operations.calls == []
    assert harness.sessions.only_session().pending_action is None


@pytest.mark.asyncio
async def test_expiry_boundary(harness):
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[0], "Create?", message="Confirm.")
    pending = harness.sessions.only_session().pending_action

    harness.clock.advance(timedelta(minutes=60))
    assert harness.gate.is_expired(pending) is False

    harness.clock.advance(timedelta(seconds=1))
    assert harness.gate.is_expired(pending) is True
    assert await harness.gate.expire(await _reload(harness, context)) is True
    assert harness.audit.events[-1]["action"] == "pending_action.expired"
    assert harness.audit.events[-1]["actor_type"] == "system"


@pytest.mark.asyncio
async def test_superseding_a_link_reverts_the_old_attachment(harness):
    await _pending_attachment(harness, "att_1")
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[2], "Link?", message="Confirm.")

    await harness.gate.request(context, PAYLOADS[0], "Create?", message="Confirm.")

    assert harness.attachments.records["att_1"].link_state == LinkState.UNLINKED
    assert harness.sessions.only_session().pending_action.name == "create_work_order"


@pytest.mark.asyncio
async def test_link_confirmation_marks_attachment_linked(harness):
    await _pending_attachment(harness, "att_1")
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[2], "Link?", message="Confirm.")
    turn = TurnState()

    response = await harness.gate.resolve(context, turn, "go ahead")

    link_call = harness.operations.calls_for(OperationId.DOCUMENTS_LINK_ATTACHMENT)[0]
    assert link_call["attachment_id"] == "att_1"
    assert link_call["storage_key"] == "org_1/ab/abc.pdf"
    assert link_call["linked_by"] == "user_confirmed"
    assert harness.attachments.records["att_1"].link_state == LinkState.LINKED
    assert turn.pointer_updates["last_project_id"] == "proj_1"
    assert response.message == '✅ Attachment linked to "Solar Farm A".'


@pytest.mark.asyncio
async def test_failed_link_reverts_attachment(harness):
    from channel_agent.kernel.errors import UpstreamError

    harness.operations.responses[OperationId.DOCUMENTS_LINK_ATTACHMENT] = UpstreamError()
    await _pending_attachment(harness, "att_1")
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[2], "Link?", message="Confirm.")

    response = await harness.gate.resolve(context, TurnState(), "yes")

    assert response.success is False
    assert harness.attachments.records["att_1"].link_state == LinkState.UNLINKED
    assert harness.audit.actions() == ["pending_action.failed"]


@pytest.mark.asyncio
async def test_link_is_not_dispatched_once_attachment_left_pending(harness):
    await _pending_attachment(harness, "att_1")
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[2], "Link?", message="Confirm.")
    await harness.attachments.revert_to_unlinked("att_1")

    response = await harness.gate.resolve(context, TurnState(), "yes")

    assert response.success is False
    assert response.message == responses.ATTACHMENT_NOT_PENDING
    assert harness.operations.calls_for(OperationId.DOCUMENTS_LINK_ATTACHMENT) == []
    assert harness.attachments.records["att_1"].link_state == LinkState.UNLINKED
    assert harness.audit.actions() == ["pending_action.failed"]


@pytest.mark.asyncio
async def test_link_reply_reports_unsaved_local_state(harness, monkeypatch):
    async def not_pending(attachment_id, user_id):
        return False

    await _pending_attachment(harness, "att_1")
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[2], "Link?", message="Confirm.")
    monkeypatch.setattr(harness.attachments, "mark_linked", not_pending)

    response = await harness.gate.resolve(context, TurnState(), "yes")

    assert len(harness.operations.calls_for(OperationId.DOCUMENTS_LINK_ATTACHMENT)) == 1
    assert response.message.startswith('✅ Attachment linked to "Solar Farm A".')
    assert response.message.endswith(responses.LINK_STATE_NOT_SAVED_NOTE)


@pytest.mark.asyncio
async def test_respond_to_request_reports_outstanding_items(harness):
    harness.operations.responses[OperationId.REQUEST_WORKSPACES_CREATE] = {"workspace_id": "ws_1"}
    harness.operations.responses[OperationId.REQUEST_WORKSPACES_VALIDATE] = {
        "missing_fields": ["capex"],
        "missing_docs": ["permit", "lease"],
    }
    context = await _context(harness)
    await harness.gate.request(context, PAYLOADS[3], "Respond?", message="Confirm.")

    response = await harness.gate.resolve(context, TurnState(), "yes")

    assert "⚠️ 3 items still needed." in response.message
    assert "Asset Hub" in response.message
    assert response.data["workspace_id"] == "ws_1"


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_the_turn(harness):
    gate = ConfirmationGate(
        harness.sessions,
        harness.bridge,
        harness.attachments,
        RecordingAuditLog(fail=True),
        max_age=timedelta(minutes=60),
        product_name="Asset Hub",
        clock=harness.clock.now,
    )
    harness.operations.responses[OperationId.MAINTENANCE_CREATE_WORK_ORDER] = {"id": "wo_7"}
    context = await _context(harness)
    await gate.request(context, PAYLOADS[0], "Create?", message="Confirm.")

    response = await gate.resolve(context, TurnState(), "yes")

    assert response.success is True
    assert "wo_7" in response.message
