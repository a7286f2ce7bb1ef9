"""
Mention Notifications

Notifier collaborator called once per resolved @mention. The default
implementation writes the notification to the log; a mail or webhook
sender can be swapped in through the get_notifier dependency.
"""
from typing import Protocol

from backoffice.models import Lead, User
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


class MentionNotifier(Protocol):
    def notify_mention(self, author: User, mentioned: User, lead: Lead, body: str) -> None:
        ...


class LoggingNotifier:
    """Logs "X mentioned Y in lead Z" instead of sending email."""

    def notify_mention(self, author: User, mentioned: User, lead: Lead, body: str) -> None:
        logger.info(
            f'Email notification: {author.name} mentioned {mentioned.name} in lead "{lead.name}"',
            extra={"organization_id": lead.org_id, "user_id": mentioned.id},
        )
