from __future__ import annotations

import re
import secrets
from uuid import uuid4


_PREFIX_RE = re.compile(r"^[a-z][a-z0-9]{1,24}$")


def new_prefixed_id(prefix: str) -> str:
    """Generate a new ID of the form `{prefix}_{uuidhex}`.

    Sessions, attachments, pending actions and quarantine rows all use this
    shape so ids are recognisable in logs.
    """
    if not _PREFIX_RE.fullmatch(prefix):
        raise ValueError(
            "Invalid id prefix. Expected lowercase letters/digits, 2-25 chars, "
            "starting with a letter."
        )
    return f"{prefix}_{uuid4().hex}"


def new_binding_code() -> str:
    """Six-digit numeric code typed back into a chat to bind a workspace."""
    return f"{secrets.randbelow(1_000_000):06d}"
