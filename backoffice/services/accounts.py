"""
Account Service

Signup, login and the "who am I" view.
"""
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError

from backoffice.core.exceptions import AuthenticationError, ConflictError, EntityNotFoundError
from backoffice.models import User
from backoffice.services.organizations import OrganizationService
from backoffice.store import Store
from backoffice.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


def default_organization_name(name: str) -> str:
    return f"{name}'s Organization"


class AccountService:
    def __init__(self, store: Store):
        self.store = store

    def signup(self, email: str, password: str, name: str) -> User:
        """
        Register a user and give them a default organization.

        The organization is best-effort: if creating it fails the account
        still exists, just without an organization. The user can create one
        later through POST /api/organizations.
        """
        if self.store.get_user_by_email(email):
            raise ConflictError("User already exists")

        user = self.store.create_user(email=email, password=password, name=name)
        logger.info(f"New user registered: {user.id}")

        try:
            OrganizationService(self.store).create(user, default_organization_name(name))
        except SQLAlchemyError:
            self.store.db.rollback()
            logger.warning(
                f"Default organization creation failed for user {user.id}",
                exc_info=True,
                extra={"user_id": user.id},
            )

        return user

    def login(self, email: str, password: str) -> User:
        user = self.store.verify_password(email, password)
        if not user:
            # Same message whether the email or the password was wrong
            log_security_event(
                "failed_login",
                {"email": email},
                logger
            )
            raise AuthenticationError("Invalid credentials")

        logger.info(f"Successful login: user={user.id}")
        return user

    def me(self, user_id: str) -> Dict[str, Any]:
        result = self.store.get_user_with_organizations(user_id)
        if not result:
            raise EntityNotFoundError("User")
        return result
