"""Role-based permission table and access checks.

The table is built once at import and exposed read-only. Roles, resources
and actions that are not listed have no permissions.
"""

from collections.abc import Mapping
from types import MappingProxyType

_TASK_ACTIONS = {
    "admin": ("create", "read", "update", "delete", "assign"),
    "manager": ("create", "read", "update", "assign"),
    "member": ("create", "read", "update"),
}

_ROLE_TABLE: dict[str, dict[str, tuple[str, ...]]] = {
    "admin": {
        "tasks": _TASK_ACTIONS["admin"],
        "users": ("create", "read", "update", "delete", "changeRole"),
        "auditLogs": ("read",),
        "dashboard": ("read",),
        "organization": ("read", "update"),
        "notifications": ("read", "update"),
        "reports": ("read",),
    },
    "manager": {
        "tasks": _TASK_ACTIONS["manager"],
        "users": ("read",),
        "auditLogs": ("read",),
        "dashboard": ("read",),
        "notifications": ("read", "update"),
        "reports": ("read",),
    },
    "member": {
        "tasks": _TASK_ACTIONS["member"],
        "users": ("read",),
        "dashboard": ("read",),
        "notifications": ("read", "update"),
        "reports": ("read",),
    },
}


def _freeze(table: dict[str, dict[str, tuple[str, ...]]]) -> Mapping[str, Mapping[str, frozenset[str]]]:
    frozen = {}
    for role, resources in table.items():
        grants = {resource: frozenset(actions) for resource, actions in resources.items()}
        # Templates share the task grants of each role
        if "tasks" in grants:
            grants["task_template"] = grants["tasks"]
        frozen[role] = MappingProxyType(grants)
    return MappingProxyType(frozen)


ROLE_PERMISSIONS: Mapping[str, Mapping[str, frozenset[str]]] = _freeze(_ROLE_TABLE)

_NO_PERMISSIONS: Mapping[str, frozenset[str]] = MappingProxyType({})


def get_permissions(role: str | None) -> Mapping[str, frozenset[str]]:
    """Resource -> actions granted to a role (empty for unknown roles)."""
    if role is None:
        return _NO_PERMISSIONS
    return ROLE_PERMISSIONS.get(role, _NO_PERMISSIONS)


def is_allowed(role: str | None, action: str, resource: str) -> bool:
    """Whether ``role`` may perform ``action`` on ``resource``."""
    return action in get_permissions(role).get(resource, frozenset())


def denial_message(role: str | None, action: str, resource: str) -> str:
    return f"Role '{role}' does not have '{action}' permission on '{resource}'"
