from __future__ import annotations

import pytest

from channel_agent.agent import responses
from channel_agent.agent.attachments import ALREADY_LINKED, FETCH_FAILED
from channel_agent.classifier.schemas import AskStatusIntent, LinkDocIntent
from channel_agent.kernel.errors import UpstreamError, ValidationError
from channel_agent.operations.models import OperationId
from channel_agent.storage.attachments import LinkState
from tests.support.harness import pdf_media

pytestmark = pytest.mark.unit


async def _with_project_context(harness) -> None:
    harness.classifier.result = AskStatusIntent(project_id="proj_1", confidence=0.9)
    await harness.send("status of Solar Farm A")


@pytest.mark.asyncio
async def test_attachment_is_stored_before_any_suggestion(harness):
    response = await harness.send(media=pdf_media("permit.pdf"))

    record = harness.attachments.only_record()
    assert record.filename == "permit.pdf"
    assert record.mime_type == "application/pdf"
    assert record.organization_id == "org_1"
    assert record.storage_key in harness.blobs.objects
    assert record.storage_key.endswith(".pdf")
    assert response.data["unlinked"] is True


@pytest.mark.asyncio
async def test_project_in_context_becomes_a_link_suggestion(harness):
    await _with_project_context(harness)

    response = await harness.send(media=pdf_media())

    record = harness.attachments.only_record()
    pending = harness.sessions.only_session().pending_action
    assert record.link_state == LinkState.LINK_PENDING
    assert record.linked_entity_id == "proj_1"
    assert pending.name == "link_attachment"
    assert pending.payload["attachment_id"] == record.id
    assert response.requires_confirmation is True
    assert 'I\'ll link it to "Solar Farm A".' in response.confirmation_prompt
    assert response.data["suggested_project_id"] == "proj_1"
    assert response.data["confidence"] == 0.7
    assert harness.operations.mutating_calls(harness.registry) == []


@pytest.mark.asyncio
async def test_confirming_the_suggestion_links_the_attachment(harness):
    await _with_project_context(harness)
    await harness.send(media=pdf_media())

    response = await harness.send("yes")

    record = harness.attachments.only_record()
    assert record.link_state == LinkState.LINKED
    assert len(harness.operations.calls_for(OperationId.DOCUMENTS_LINK_ATTACHMENT)) == 1
    assert response.message == '✅ Attachment linked to "Solar Farm A".'


@pytest.mark.asyncio
async def test_declining_the_suggestion_leaves_attachment_unlinked(harness):
    await _with_project_context(harness)
    await harness.send(media=pdf_media())

    response = await harness.send("no")

    assert response.message == responses.ACTION_CANCELLED
    assert harness.attachments.only_record().link_state == LinkState.UNLINKED
    assert harness.operations.calls_for(OperationId.DOCUMENTS_LINK_ATTACHMENT) == []


@pytest.mark.asyncio
async def test_fetch_failure_stores_nothing(harness):
    harness.fetcher.error = UpstreamError(message="Media download failed", code="media.download_failed")

    response = await harness.send(media=pdf_media())

    assert response.success is False
    assert response.message == FETCH_FAILED
    assert harness.attachments.records == {}
    assert harness.blobs.objects == {}


@pytest.mark.asyncio
async def test_oversized_media_is_refused(harness):
    harness.fetcher.error = ValidationError(message="Attachment is too large", code="media.too_large")

    response = await harness.send(media=pdf_media())

    assert response.message == FETCH_FAILED


@pytest.mark.asyncio
async def test_link_doc_after_upload_uses_last_attachment(harness):
    await harness.send(media=pdf_media())
    record_id = harness.attachments.only_record().id
    harness.classifier.result = LinkDocIntent(project_id="proj_1", confidence=0.6)

    response = await harness.send("link it to Solar Farm A")

    pending = harness.sessions.only_session().pending_action
    assert pending.payload["attachment_id"] == record_id
    assert pending.payload["confidence"] == 1.0
    assert 'I\'ll link it to "Solar Farm A".' in response.confirmation_prompt


@pytest.mark.asyncio
async def test_low_confidence_suggestion_is_offered_not_preselected(harness):
    await harness.send(media=pdf_media())
    session_id = harness.sessions.only_session().id
    await harness.sessions.update_context(session_id, {"last_project_id": "proj_1"})
    harness.classifier.result = LinkDocIntent(confidence=0.5)

    response = await harness.send("link it to the usual project")

    assert "Should I link it to \"Solar Farm A\"?" in response.confirmation_prompt
    assert harness.sessions.only_session().pending_action.payload["confidence"] == 0.5


@pytest.mark.asyncio
async def test_link_doc_without_attachment_asks_for_the_file(harness):
    harness.classifier.result = LinkDocIntent(project_id="proj_1", confidence=0.9)

    response = await harness.send("link it to Solar Farm A")

    assert response.success is False
    assert "Send the file first" in response.message
    assert harness.sessions.only_session().pending_action is None


@pytest.mark.asyncio
async def test_linked_attachment_cannot_be_relinked(harness):
    await _with_project_context(harness)
    await harness.send(media=pdf_media())
    await harness.send("yes")
    harness.classifier.result = LinkDocIntent(project_id="proj_1", confidence=0.9)

    response = await harness.send("link it to Solar Farm A")

    assert response.message == ALREADY_LINKED
    assert harness.sessions.only_session().pending_action is None
