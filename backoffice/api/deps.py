"""
API Dependencies

Reusable FastAPI dependencies for authentication and authorization.
Every organization-scoped route resolves the caller's membership here
before any domain service runs.
"""
from typing import Callable, Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backoffice.config import get_settings
from backoffice.core.exceptions import (
    AuthenticationError,
    BillingNotConfiguredError,
    NotAMemberError,
    PermissionDenied,
)
from backoffice.core.permissions import require_permission
from backoffice.core.security import decode_access_token
from backoffice.database import get_db
from backoffice.integrations.airtable_client import AirtableClient
from backoffice.integrations.payments import StripeClient
from backoffice.models import ApiKey, Membership, User
from backoffice.services.api_keys import ApiKeyService
from backoffice.services.notifications import LoggingNotifier, MentionNotifier
from backoffice.store import Store
from backoffice.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()

# Optional so the session cookie can be used instead
bearer_scheme = HTTPBearer(auto_error=False)


def get_store(db: Session = Depends(get_db)) -> Store:
    return Store(db)


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(get_session_token),
    store: Store = Depends(get_store),
) -> User:
    """
    Resolve the session token to a user.

    Raises AuthenticationError (401) when the token is missing, invalid,
    expired, or names a user that no longer exists.
    """
    if not token:
        raise AuthenticationError("Authentication required")

    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired session")

    user = store.get_user(payload["sub"])
    if not user:
        logger.warning(f"Session for missing user: {payload['sub']}")
        raise AuthenticationError("User not found")

    request.state.user_id = user.id
    return user


def resolve_membership(store: Store, org_id: str, user: User) -> Membership:
    """
    The Access Control Guard: the caller's membership in ``org_id``.

    Raises NotAMemberError (403) when the user doesn't belong to the
    organization, including when the organization doesn't exist.
    """
    membership = store.get_member(org_id, user.id)
    if not membership:
        log_security_event(
            "not_a_member",
            {"user_id": user.id, "organization_id": org_id},
            logger
        )
        raise NotAMemberError()
    return membership


async def get_membership(
    org_id: str,
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> Membership:
    """Membership for the ``{org_id}`` path parameter. Any role passes."""
    return resolve_membership(store, org_id, current_user)


def check_permission(membership: Membership, resource: str, action: str) -> None:
    """require_permission with the denial logged as a security event."""
    try:
        require_permission(membership, resource, action)
    except PermissionDenied:
        log_security_event(
            "permission_denied",
            {
                "user_id": membership.user_id,
                "organization_id": membership.org_id,
                "role": membership.role.value,
                "resource": resource,
                "action": action,
            },
            logger
        )
        raise


def require(resource: str, action: str) -> Callable[..., Membership]:
    """
    Dependency factory: the caller's membership, checked against the
    policy table for ``(resource, action)``.

    Usage: ``membership: Membership = Depends(require("lead", "create"))``
    """
    async def dependency(membership: Membership = Depends(get_membership)) -> Membership:
        check_permission(membership, resource, action)
        return membership

    return dependency


def get_notifier() -> MentionNotifier:
    return LoggingNotifier()


def get_stripe_client() -> StripeClient:
    """
    Payment provider client. Billing routes answer 404 when no secret key
    is configured, as if they were never mounted.
    """
    if not settings.STRIPE_SECRET_KEY:
        raise BillingNotConfiguredError()
    return StripeClient(
        secret_key=settings.STRIPE_SECRET_KEY,
        api_base=settings.STRIPE_API_BASE,
        timeout=settings.EXTERNAL_HTTP_TIMEOUT,
    )


def get_airtable_client_factory() -> Callable[[str], AirtableClient]:
    """Builds a client per API key, since each organization brings its own."""
    def factory(api_key: str) -> AirtableClient:
        return AirtableClient(
            api_key=api_key,
            api_base=settings.AIRTABLE_API_BASE,
            timeout=settings.EXTERNAL_HTTP_TIMEOUT,
        )

    return factory


async def get_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    store: Store = Depends(get_store),
) -> ApiKey:
    """Authenticate a machine client by its X-API-Key header."""
    if not x_api_key:
        raise AuthenticationError("API key required")

    api_key = ApiKeyService(store).authenticate(x_api_key)
    if not api_key:
        log_security_event(
            "invalid_api_key",
            {"key_prefix": x_api_key[:6]},
            logger
        )
        raise AuthenticationError("Invalid API key")

    request.state.organization_id = api_key.org_id
    return api_key
