"""
Custom Exceptions

Centralized exception definitions. Services raise these and the app-level
handlers in main.py render them as ``{"error": message}`` bodies.
"""
from fastapi import HTTPException, status


class EntityNotFoundError(HTTPException):
    """
    Raised when an entity is absent or belongs to another organization.

    Both cases look the same to the caller so ids from other tenants can't be
    probed.
    """

    def __init__(self, entity: str = "Entity"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{entity} not found"
        )


class AuthenticationError(HTTPException):
    """Raised when authentication fails."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotAMemberError(HTTPException):
    """Raised when an authenticated user has no membership in the organization."""

    def __init__(self, detail: str = "Access denied to organization"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class PermissionDenied(HTTPException):
    """Raised when the caller's role isn't allowed to perform an action."""

    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class InvalidInputError(HTTPException):
    """Raised when input validation fails."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class ConflictError(HTTPException):
    """
    Raised on business-rule conflicts (duplicate email, duplicate membership).

    Surfaced as 400 rather than 409 to keep one status for client mistakes.
    """

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class PlanLimitExceeded(HTTPException):
    """Raised when an organization hits a numeric limit of its plan."""

    def __init__(self, resource: str, plan: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{resource.capitalize()} limit reached for {plan} plan. "
                   f"Upgrade to create more {resource}."
        )


class BillingNotConfiguredError(HTTPException):
    """
    Raised when the payment provider isn't configured.

    Answers 404 so the billing routes look absent, as if never mounted.
    """

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not Found"
        )


class ExternalServiceError(HTTPException):
    """Raised when a call to the payment or tabular-data provider fails."""

    def __init__(self, service: str, detail: str = ""):
        message = f"{service} request failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=message
        )


class RateLimitExceeded(HTTPException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)}
        )
