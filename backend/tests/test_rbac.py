import pytest

from roofdesk.errors import PermissionDeniedError
from roofdesk.models.organization import TeamRole
from roofdesk.services.rbac import (
    ALL_PERMISSIONS,
    ROLE_PERMISSIONS,
    TenantContext,
    has_permission,
    has_role,
    require_permission,
    require_role,
)


def _ctx(role: TeamRole) -> TenantContext:
    return TenantContext(org_id=1, user_id="u-1", role=role)


def test_admin_holds_every_permission():
    assert ROLE_PERMISSIONS[TeamRole.admin] == ALL_PERMISSIONS


def test_role_permission_sets_are_nested():
    viewer = ROLE_PERMISSIONS[TeamRole.viewer]
    member = ROLE_PERMISSIONS[TeamRole.member]
    manager = ROLE_PERMISSIONS[TeamRole.manager]
    assert viewer <= member <= manager <= ALL_PERMISSIONS


def test_member_can_create_claims_but_not_edit_vendors():
    assert has_permission(TeamRole.member, "claims:create")
    assert has_permission(TeamRole.member, "reports:create")
    assert not has_permission(TeamRole.member, "vendors:edit")
    assert has_permission(TeamRole.manager, "vendors:edit")


def test_require_permission_raises_permission_denied_with_details():
    with pytest.raises(PermissionDeniedError) as excinfo:
        require_permission(_ctx(TeamRole.viewer), "claims:edit")
    assert excinfo.value.http_status == 403
    assert excinfo.value.details == {"required": "claims:edit", "role": "viewer"}


def test_require_permission_rejects_unknown_permission_names():
    with pytest.raises(ValueError):
        require_permission(_ctx(TeamRole.admin), "claims:frobnicate")


def test_role_ordering():
    assert has_role(TeamRole.admin, TeamRole.manager)
    assert has_role(TeamRole.manager, TeamRole.manager)
    assert not has_role(TeamRole.member, TeamRole.manager)
    require_role(_ctx(TeamRole.admin), TeamRole.manager)
    with pytest.raises(PermissionDeniedError):
        require_role(_ctx(TeamRole.viewer), TeamRole.member)
