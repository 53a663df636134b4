"""Role-based access control for org members.

Roles are ordered admin > manager > member > viewer. Route handlers call
``require_permission`` (or depend on ``api.deps.permission``) before touching
data; a miss raises ``PermissionDeniedError`` which renders as 403.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet

from roofdesk.errors import PermissionDeniedError
from roofdesk.models.organization import TeamRole

ROLE_LEVELS: Dict[TeamRole, int] = {
    TeamRole.admin: 4,
    TeamRole.manager: 3,
    TeamRole.member: 2,
    TeamRole.viewer: 1,
}

ALL_PERMISSIONS: FrozenSet[str] = frozenset(
    {
        "claims:create",
        "claims:edit",
        "claims:delete",
        "claims:view",
        "vendors:create",
        "vendors:edit",
        "vendors:delete",
        "vendors:view",
        "products:create",
        "products:edit",
        "products:delete",
        "products:view",
        "team:invite",
        "team:edit",
        "team:remove",
        "team:view",
        "billing:manage",
        "billing:view",
        "integrations:manage",
        "integrations:view",
        "reports:create",
        "reports:view",
        "analytics:view",
    }
)

ROLE_PERMISSIONS: Dict[TeamRole, FrozenSet[str]] = {
    TeamRole.admin: ALL_PERMISSIONS,
    TeamRole.manager: frozenset(
        {
            "claims:create",
            "claims:edit",
            "claims:view",
            "vendors:create",
            "vendors:edit",
            "vendors:view",
            "products:create",
            "products:edit",
            "products:view",
            "team:view",
            "billing:view",
            "integrations:view",
            "reports:create",
            "reports:view",
            "analytics:view",
        }
    ),
    TeamRole.member: frozenset(
        {
            "claims:create",
            "claims:edit",
            "claims:view",
            "vendors:view",
            "products:view",
            "team:view",
            "reports:create",
            "reports:view",
        }
    ),
    TeamRole.viewer: frozenset(
        {"claims:view", "vendors:view", "products:view", "team:view", "reports:view"}
    ),
}


@dataclass(frozen=True)
class TenantContext:
    org_id: int
    user_id: str
    role: TeamRole


def has_permission(role: TeamRole, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def has_role(role: TeamRole, minimum: TeamRole) -> bool:
    return ROLE_LEVELS.get(role, 0) >= ROLE_LEVELS[minimum]


def require_permission(ctx: TenantContext, permission: str) -> None:
    if permission not in ALL_PERMISSIONS:
        raise ValueError(f"Unknown permission: {permission}")
    if not has_permission(ctx.role, permission):
        raise PermissionDeniedError(
            f"Role '{ctx.role.value}' lacks permission '{permission}'",
            details={"required": permission, "role": ctx.role.value},
        )


def require_role(ctx: TenantContext, minimum: TeamRole) -> None:
    if not has_role(ctx.role, minimum):
        raise PermissionDeniedError(
            f"Requires role '{minimum.value}' or higher",
            details={"required_role": minimum.value, "role": ctx.role.value},
        )
