"""
Permission System (RBAC)

One policy table maps (resource, action) to the roles allowed to perform it.
Endpoints consult it once per request through require_permission().

Reading is open to every member of the organization; the table only lists
mutations and admin-only reads.
"""
from typing import Dict, FrozenSet, Tuple
from backoffice.models.organization import Membership, MemberRole
from backoffice.core.exceptions import PermissionDenied

ADMIN_ONLY: FrozenSet[MemberRole] = frozenset({MemberRole.ADMIN})
ADMIN_OR_EDITOR: FrozenSet[MemberRole] = frozenset({MemberRole.ADMIN, MemberRole.EDITOR})
ANY_MEMBER: FrozenSet[MemberRole] = frozenset(MemberRole)

POLICY: Dict[Tuple[str, str], FrozenSet[MemberRole]] = {
    ("member", "invite"): ADMIN_OR_EDITOR,
    ("member", "update"): ADMIN_ONLY,
    ("member", "remove"): ADMIN_ONLY,
    ("api_key", "create"): ADMIN_OR_EDITOR,
    ("api_key", "delete"): ADMIN_OR_EDITOR,
    ("setting", "update"): ADMIN_ONLY,
    ("billing", "manage"): ADMIN_ONLY,
    ("airtable", "manage"): ADMIN_ONLY,
    ("pipeline", "create"): ADMIN_OR_EDITOR,
    ("pipeline", "update"): ADMIN_OR_EDITOR,
    ("pipeline", "delete"): ADMIN_OR_EDITOR,
    ("stage", "create"): ADMIN_OR_EDITOR,
    ("stage", "update"): ADMIN_OR_EDITOR,
    ("stage", "delete"): ADMIN_OR_EDITOR,
    ("stage", "reorder"): ADMIN_OR_EDITOR,
    ("lead", "create"): ADMIN_OR_EDITOR,
    ("lead", "update"): ADMIN_OR_EDITOR,
    ("lead", "delete"): ADMIN_OR_EDITOR,
    ("lead", "move"): ADMIN_OR_EDITOR,
    ("comment", "create"): ANY_MEMBER,
}


def allowed_roles(resource: str, action: str) -> FrozenSet[MemberRole]:
    """Roles allowed for an action. Unlisted actions are admin-only."""
    return POLICY.get((resource, action), ADMIN_ONLY)


def can(membership: Membership, resource: str, action: str) -> bool:
    return membership.role in allowed_roles(resource, action)


def require_permission(membership: Membership, resource: str, action: str) -> None:
    """
    Raise PermissionDenied unless the member's role is allowed.

    Admin-only actions get a more specific message.
    """
    if can(membership, resource, action):
        return
    if allowed_roles(resource, action) == ADMIN_ONLY:
        raise PermissionDenied("Admin access required")
    raise PermissionDenied("Insufficient permissions")


def can_delete_comment(membership: Membership, comment_author_id: str) -> bool:
    """
    Comment authors may delete their own comments; admins may delete any.
    """
    if membership.role == MemberRole.ADMIN:
        return True
    return membership.user_id == comment_author_id
