"""
Internal JWT for calls into the business backend.

Each call carries a short-lived token naming the user, organization and
role the operation runs as. The backend re-applies its own guards; the
token only tells it who is asking.

Claims:
- kind: "channel_agent_operation"
- sub: user id
- org_id / role: the scoped caller
- iat/exp: issued/expiry
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from channel_agent.config import get_settings
from channel_agent.operations.models import ScopedCaller

JWT_ALGORITHM = "HS256"
TOKEN_KIND = "channel_agent_operation"


def create_operation_jwt(caller: ScopedCaller) -> str:
    settings = get_settings()
    secret = settings.operations_internal_secret
    if not secret:
        raise RuntimeError("OPERATIONS_INTERNAL_SECRET is required to call the operations backend")

    now = datetime.now(timezone.utc)
    expiry = now + timedelta(minutes=int(settings.operations_jwt_expiry_minutes or 5))
    payload = {
        "kind": TOKEN_KIND,
        "sub": caller.user_id,
        "org_id": caller.organization_id,
        "role": caller.role,
        "iss": settings.operations_jwt_issuer,
        "iat": int(now.timestamp()),
        "exp": int(expiry.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)
