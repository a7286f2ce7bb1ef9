"""
Organization Context Middleware

Pulls the organization id out of ``/api/organizations/{id}/...`` paths and
puts it on ``request.state`` so logging and rate limiting can key on it.

This only labels the request. Membership is checked by the get_membership
dependency; a request naming an organization the caller doesn't belong to
still reaches the route and is rejected there with 403.
"""
import re
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from backoffice.utils.logging import get_logger

logger = get_logger(__name__)

ORGANIZATION_PATH = re.compile(r"^/api/organizations/([^/]+)")


def extract_organization_id(path: str) -> Optional[str]:
    match = ORGANIZATION_PATH.match(path)
    return match.group(1) if match else None


class OrganizationContextMiddleware(BaseHTTPMiddleware):
    """Sets request.state.organization_id (None outside organization routes)."""

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        request.state.organization_id = None

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        organization_id = extract_organization_id(request.url.path)
        if organization_id:
            request.state.organization_id = organization_id
            logger.debug(f"Request for organization: {organization_id}")

        return await call_next(request)
