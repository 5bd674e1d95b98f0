"""Fixed reply texts and small AgentResponse builders."""

from __future__ import annotations

from typing import Any

from channel_agent.channels.models import AgentResponse

CONFIRM_INSTRUCTIONS = 'Reply "yes" to confirm or "no" to cancel.'

REPROMPT = 'Please reply "yes" to confirm or "no" to cancel.'
ACTION_CANCELLED = "Action cancelled."
ALREADY_HANDLED = "That request has already been handled."
NOTHING_PENDING = (
    "There's nothing waiting for your confirmation right now. "
    "Tell me what you'd like to do, for example \"check status of a project\"."
)
PENDING_EXPIRED_NOTE = "Your earlier request expired before it was confirmed, so I cancelled it."
WRONG_WORKSPACE_CANCELLED = (
    "That request was started in a different workspace, so I cancelled it. "
    "Please ask again."
)
GENERIC_FAILURE = "Sorry, something went wrong on my side. Please try again in a moment."
SEND_FILE_PROMPT = "Please send the file as an attachment and I'll store it for you."
ATTACHMENT_NOT_PENDING = "That file is no longer waiting to be linked. Please send it again."
LINK_STATE_NOT_SAVED_NOTE = (
    "The link was made, but I couldn't update the file's status here, so it may still show as unlinked."
)

UNKNOWN_INTENT = (
    "I'm not sure what you're asking for. You can ask me to:\n"
    "• Check project or dataroom status\n"
    "• Search for documents\n"
    "• Create work orders\n"
    "• Generate datarooms\n"
    "• Summarize recent activity\n"
    "• List my requests\n"
    "• Respond to a request\n"
    "• Create a new request"
)
UNKNOWN_SUGGESTIONS = ["Check status", "Search documents", "Create work order", "List requests"]


def reply(message: str, *, success: bool = True, data: dict[str, Any] | None = None,
          suggested_actions: list[str] | None = None) -> AgentResponse:
    return AgentResponse(success=success, message=message, data=data, suggested_actions=suggested_actions)


def failure(message: str, **kwargs: Any) -> AgentResponse:
    return reply(message, success=False, **kwargs)


def unknown_intent() -> AgentResponse:
    return failure(UNKNOWN_INTENT, suggested_actions=list(UNKNOWN_SUGGESTIONS))


def confirmation_request(message: str, prompt: str, data: dict[str, Any] | None = None) -> AgentResponse:
    return AgentResponse(
        success=True,
        message=message,
        requires_confirmation=True,
        confirmation_prompt=prompt,
        data=data,
    )


def reprompt(prompt: str) -> AgentResponse:
    return AgentResponse(
        success=False,
        message=REPROMPT,
        requires_confirmation=True,
        confirmation_prompt=prompt,
    )


def with_notes(response: AgentResponse, notes: list[str]) -> AgentResponse:
    if not notes:
        return response
    return response.model_copy(update={"message": "\n\n".join([*notes, response.message])})


def create_request_guidance(product_name: str) -> AgentResponse:
    return reply(
        "📋 To create a new request:\n\n"
        f"1. Go to the Requests page in {product_name}\n"
        '2. Click "New Request"\n'
        "3. Select a template or create custom\n"
        "4. Add recipients and requirements\n\n"
        "Creating requests via chat isn't available yet, so please use the web "
        "interface for full control over templates and requirements.",
        suggested_actions=["List my requests", "Check project status"],
    )
