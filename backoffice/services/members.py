"""
Member Service

Inviting registered users into an organization and managing their roles.

There is no email-invite flow for unknown addresses: the invitee must
already have an account. Invitations are accepted immediately.
"""
from datetime import datetime
from typing import List

from backoffice.core.exceptions import (
    ConflictError,
    EntityNotFoundError,
    InvalidInputError,
    PermissionDenied,
)
from backoffice.models import Membership, MemberRole
from backoffice.services.audit import AuditRecorder
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


class MemberService:
    def __init__(self, store: Store):
        self.store = store
        self.audit = AuditRecorder(store)

    def list(self, org_id: str) -> List[Membership]:
        return self.store.list_members(org_id)

    def invite(self, actor: Membership, email: str, role: MemberRole) -> Membership:
        # Editors may invite, but only admins can hand out admin
        if role == MemberRole.ADMIN and actor.role != MemberRole.ADMIN:
            raise PermissionDenied("Only admins can invite admins")

        invitee = self.store.get_user_by_email(email)
        if not invitee:
            raise InvalidInputError("User not found")

        if self.store.get_member(actor.org_id, invitee.id):
            raise ConflictError("User is already a member")

        member = self.store.add_member(
            org_id=actor.org_id,
            user_id=invitee.id,
            role=role,
            invited_by=actor.user_id,
            accepted_at=datetime.utcnow(),
        )
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="invite",
            entity="member",
            entity_id=invitee.id,
            metadata={"email": email, "role": role.value},
        )
        logger.info(f"Member invited: {invitee.id} to {actor.org_id} as {role.value} by {actor.user_id}")
        return member

    def _ensure_not_owner(self, org_id: str, user_id: str, message: str) -> None:
        org = self.store.get_organization(org_id)
        if org and org.owner_id == user_id:
            raise InvalidInputError(message)

    def update_role(self, actor: Membership, user_id: str, role: MemberRole) -> Membership:
        if not self.store.get_member(actor.org_id, user_id):
            raise EntityNotFoundError("Member")
        self._ensure_not_owner(actor.org_id, user_id, "The organization owner's role cannot be changed")

        member = self.store.update_member_role(actor.org_id, user_id, role)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="update",
            entity="member",
            entity_id=user_id,
            metadata={"role": role.value},
        )
        logger.info(f"Member role changed: {user_id} in {actor.org_id} to {role.value}")
        return member

    def remove(self, actor: Membership, user_id: str) -> None:
        if not self.store.get_member(actor.org_id, user_id):
            raise EntityNotFoundError("Member")
        self._ensure_not_owner(actor.org_id, user_id, "The organization owner cannot be removed")

        self.store.remove_member(actor.org_id, user_id)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="remove",
            entity="member",
            entity_id=user_id,
        )
        logger.info(f"Member removed: {user_id} from {actor.org_id} by {actor.user_id}")
