"""
Comment Service

Comments on leads, with @mentions.

Mentions are ``@word`` tokens. A token resolves to the organization member
whose name, lower-cased with whitespace removed, equals the token
("@alicesmith" -> "Alice Smith"). Failing that it resolves to the one
member whose first name matches ("@alice" -> "Alice Smith"); an ambiguous
first name resolves to nobody. The author is never mentioned.
"""
import re
from typing import Dict, Iterable, List, Optional

from backoffice.core.exceptions import EntityNotFoundError, PermissionDenied
from backoffice.core.permissions import can_delete_comment
from backoffice.models import LeadComment, Membership, User
from backoffice.services.audit import AuditRecorder
from backoffice.services.notifications import MentionNotifier
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)")


def normalize_name(name: str) -> str:
    return re.sub(r"\s+", "", name or "").lower()


def parse_mentions(body: str) -> List[str]:
    """Mention tokens in order of appearance, lower-cased."""
    return [token.lower() for token in MENTION_PATTERN.findall(body or "")]


def resolve_mentions(body: str, members: Iterable[User], author_id: str) -> List[str]:
    """Map the body's @tokens to member user ids, in first-mention order."""
    members = list(members)
    by_full_name: Dict[str, User] = {}
    by_first_name: Dict[str, List[User]] = {}
    for user in members:
        by_full_name.setdefault(normalize_name(user.name), user)
        parts = (user.name or "").split()
        if parts:
            by_first_name.setdefault(parts[0].lower(), []).append(user)

    resolved: List[str] = []
    for token in parse_mentions(body):
        user: Optional[User] = by_full_name.get(token)
        if user is None:
            candidates = by_first_name.get(token, [])
            user = candidates[0] if len(candidates) == 1 else None
        if user is None or user.id == author_id or user.id in resolved:
            continue
        resolved.append(user.id)
    return resolved


class CommentService:
    def __init__(self, store: Store, notifier: MentionNotifier):
        self.store = store
        self.notifier = notifier
        self.audit = AuditRecorder(store)

    def create(self, actor: Membership, lead_id: str, body: str) -> LeadComment:
        lead = self.store.get_lead(lead_id, actor.org_id)
        if not lead:
            raise EntityNotFoundError("Lead")

        members = [member.user for member in self.store.list_members(actor.org_id)]
        mentioned_ids = resolve_mentions(body, members, author_id=actor.user_id)

        comment = self.store.create_comment(
            org_id=actor.org_id,
            lead_id=lead.id,
            body=body,
            user_id=actor.user_id,
            mentioned_user_ids=mentioned_ids,
        )
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="create",
            entity="comment",
            entity_id=comment.id,
            metadata={"leadId": lead.id},
        )

        author = self.store.get_user(actor.user_id)
        members_by_id = {user.id: user for user in members}
        for user_id in mentioned_ids:
            self.notifier.notify_mention(author, members_by_id[user_id], lead, body)
            self.audit.record(
                org_id=actor.org_id,
                actor_id=actor.user_id,
                action="mention",
                entity="comment",
                entity_id=comment.id,
                metadata={"leadId": lead.id, "mentionedUserId": user_id},
            )

        logger.info(
            f"Comment created: {comment.id} on lead {lead.id} with {len(mentioned_ids)} mention(s)"
        )
        return comment

    def delete(self, actor: Membership, lead_id: str, comment_id: str) -> None:
        comment = self.store.get_comment(comment_id, lead_id, actor.org_id)
        if not comment:
            raise EntityNotFoundError("Comment")
        if not can_delete_comment(actor, comment.user_id):
            raise PermissionDenied("You can only delete your own comments")

        self.store.delete_comment(comment_id, lead_id, actor.org_id)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="delete",
            entity="comment",
            entity_id=comment_id,
            metadata={"leadId": lead_id},
        )
