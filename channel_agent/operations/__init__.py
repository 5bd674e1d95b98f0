"""Operation registry and RBAC execution bridge."""

from channel_agent.operations.bridge import (
    SAFE_MESSAGES,
    MutatingOperationRefused,
    RBACExecutionBridge,
)
from channel_agent.operations.models import (
    ErrorKind,
    OperationId,
    OperationResult,
    OperationSpec,
    ScopedCaller,
)
from channel_agent.operations.permissions import Permission, has_permission
from channel_agent.operations.registry import (
    OPERATION_SPECS,
    OperationHandler,
    OperationRegistry,
    OperationRegistryError,
)
from channel_agent.operations.remote import RemoteOperationBackend
from channel_agent.operations.users import SqlUserDirectory, UserDirectory

__all__ = [
    "OPERATION_SPECS",
    "SAFE_MESSAGES",
    "ErrorKind",
    "MutatingOperationRefused",
    "OperationHandler",
    "OperationId",
    "OperationRegistry",
    "OperationRegistryError",
    "OperationResult",
    "OperationSpec",
    "Permission",
    "RBACExecutionBridge",
    "RemoteOperationBackend",
    "ScopedCaller",
    "SqlUserDirectory",
    "UserDirectory",
    "has_permission",
]
