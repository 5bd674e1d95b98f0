"""
Operation Permissions

Centralized permission matrix for operations reachable from a channel.

Role semantics:
- owner / admin: full control.
- editor: day-to-day operator, can create work orders, datarooms and links.
- reviewer: read access plus responding to incoming information requests.
- viewer: read-only.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal


Role = Literal["owner", "admin", "editor", "reviewer", "viewer"]


class Permission(str, Enum):
    VIEW_PORTFOLIO = "view_portfolio"
    VIEW_DOCUMENTS = "view_documents"
    VIEW_REQUESTS = "view_requests"
    LINK_DOCUMENTS = "link_documents"
    MANAGE_WORK_ORDERS = "manage_work_orders"
    GENERATE_DATAROOMS = "generate_datarooms"
    RESPOND_TO_REQUESTS = "respond_to_requests"


_READ = {
    Permission.VIEW_PORTFOLIO,
    Permission.VIEW_DOCUMENTS,
    Permission.VIEW_REQUESTS,
}

PERMISSION_MATRIX: dict[Role, set[Permission]] = {
    "owner": set(Permission),
    "admin": set(Permission),
    "editor": _READ
    | {
        Permission.LINK_DOCUMENTS,
        Permission.MANAGE_WORK_ORDERS,
        Permission.GENERATE_DATAROOMS,
        Permission.RESPOND_TO_REQUESTS,
    },
    "reviewer": _READ | {Permission.RESPOND_TO_REQUESTS},
    "viewer": set(_READ),
}


def is_admin_role(role: str | None) -> bool:
    return role in ("owner", "admin")


def has_permission(role: str | None, permission: Permission) -> bool:
    if role not in PERMISSION_MATRIX:
        return False
    return permission in PERMISSION_MATRIX[role]  # type: ignore[index]
