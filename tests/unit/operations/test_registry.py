from __future__ import annotations

import pytest

from channel_agent.operations.models import OperationId
from channel_agent.operations.permissions import Permission, has_permission, is_admin_role
from channel_agent.operations.registry import OPERATION_SPECS, OperationRegistry, OperationRegistryError

pytestmark = pytest.mark.unit


async def _noop(caller, payload):
    return None


def test_every_operation_has_a_spec():
    assert set(OPERATION_SPECS) == set(OperationId)


def test_mutating_operations_are_exactly_the_confirmable_ones():
    mutating = {op for op, spec in OPERATION_SPECS.items() if spec.mutating}
    assert mutating == {
        OperationId.MAINTENANCE_CREATE_WORK_ORDER,
        OperationId.DATAROOMS_GENERATE,
        OperationId.DOCUMENTS_LINK_ATTACHMENT,
        OperationId.REQUEST_WORKSPACES_CREATE,
    }


def test_validate_fails_on_missing_handlers():
    registry = OperationRegistry()
    registry.register(OperationId.PROJECTS_GET, _noop)

    with pytest.raises(OperationRegistryError) as exc_info:
        registry.validate()

    assert "documents.search" in str(exc_info.value)
    registry.validate([OperationId.PROJECTS_GET])


def test_handler_lookup_for_unregistered_operation():
    with pytest.raises(OperationRegistryError):
        OperationRegistry().handler(OperationId.PROJECTS_GET)


def test_register_rejects_operation_without_spec():
    registry = OperationRegistry({OperationId.PROJECTS_GET: OPERATION_SPECS[OperationId.PROJECTS_GET]})

    with pytest.raises(OperationRegistryError):
        registry.register(OperationId.SITES_GET, _noop)


@pytest.mark.parametrize(
    ("role", "permission", "allowed"),
    [
        ("viewer", Permission.VIEW_DOCUMENTS, True),
        ("viewer", Permission.MANAGE_WORK_ORDERS, False),
        ("reviewer", Permission.RESPOND_TO_REQUESTS, True),
        ("reviewer", Permission.LINK_DOCUMENTS, False),
        ("editor", Permission.GENERATE_DATAROOMS, True),
        ("owner", Permission.LINK_DOCUMENTS, True),
        ("stranger", Permission.VIEW_PORTFOLIO, False),
        (None, Permission.VIEW_PORTFOLIO, False),
    ],
)
def test_permission_matrix(role, permission, allowed):
    assert has_permission(role, permission) is allowed


def test_admin_roles():
    assert is_admin_role("owner") and is_admin_role("admin")
    assert not is_admin_role("editor")
