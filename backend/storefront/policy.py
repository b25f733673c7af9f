# Overview: The single access-control decision point: (role, resource, action) -> allowed?

"""
Role-based access policy.

Route guards call require() (via require_policy) and public routes that
widen results for staff call is_allowed(); there are no role comparisons
anywhere else. The table is the whole policy:
role -> resource -> actions. "*" grants every action on a resource, and a
"*" resource grants everything.

Fail closed: unknown roles, resources or actions are denied.
"""

from __future__ import annotations

ALL = "*"

RESOURCES = ("products", "categories", "inventory", "shipping", "coupons")

POLICY: dict[str, dict[str, frozenset[str]]] = {
    "super_admin": {
        ALL: frozenset({ALL}),
    },
    "admin": {
        "products": frozenset({"view", "create", "edit", "delete"}),
        "categories": frozenset({"view", "create"}),
        "inventory": frozenset({"view", "adjust"}),
        "shipping": frozenset({"view", "manage"}),
        "coupons": frozenset({"view", "manage", "redeem"}),
    },
    "manager": {
        "products": frozenset({"view", "create", "edit"}),
        "categories": frozenset({"view"}),
        "inventory": frozenset({"view", "adjust"}),
        "shipping": frozenset({"view"}),
        "coupons": frozenset({"view", "redeem"}),
    },
    "viewer": {
        "products": frozenset({"view"}),
        "categories": frozenset({"view"}),
        "inventory": frozenset({"view"}),
        "shipping": frozenset({"view"}),
        "coupons": frozenset({"view"}),
    },
    "customer": {
        "coupons": frozenset({"redeem"}),
    },
}


class PolicyDeniedError(Exception):
    """Raised when a role may not perform an action on a resource."""

    def __init__(self, role: str | None, resource: str, action: str):
        self.role = role
        self.resource = resource
        self.action = action
        super().__init__(f"Role '{role}' may not {action} {resource}")


def is_allowed(role: str | None, resource: str, action: str) -> bool:
    grants = POLICY.get(role or "")
    if not grants:
        return False
    actions = grants.get(resource) or grants.get(ALL)
    if not actions:
        return False
    return ALL in actions or action in actions


def require(role: str | None, resource: str, action: str) -> None:
    if not is_allowed(role, resource, action):
        raise PolicyDeniedError(role, resource, action)


def allowed_actions(role: str | None) -> dict[str, list[str]]:
    """Expanded view of what a role may do, for the /me endpoint and CLI."""
    grants = POLICY.get(role or "", {})
    if ALL in grants:
        return {resource: [ALL] for resource in RESOURCES}
    return {resource: sorted(actions) for resource, actions in grants.items()}
