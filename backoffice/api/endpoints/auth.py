"""
Authentication Endpoints

Signup, login, logout and the current user. The session is a signed token
in an HttpOnly cookie; API clients may send it as a Bearer header instead.
"""
from fastapi import APIRouter, Depends, Response, status

from backoffice.api.deps import get_current_user, get_store
from backoffice.config import get_settings
from backoffice.core.security import create_access_token
from backoffice.models import User
from backoffice.schemas.auth import AuthResponse, LoginRequest, MeResponse, SignupRequest
from backoffice.schemas.base import SuccessResponse
from backoffice.services.accounts import AccountService
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


def start_session(response: Response, user: User) -> None:
    token = create_access_token({"sub": user.id, "email": user.email})
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    data: SignupRequest,
    response: Response,
    store: Store = Depends(get_store)
):
    """
    Register a new user and sign them in.

    A default organization named "{name}'s Organization" is created with
    the user as admin.
    """
    user = AccountService(store).signup(data.email, data.password, data.name)
    start_session(response, user)
    return {"user": user}


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    response: Response,
    store: Store = Depends(get_store)
):
    user = AccountService(store).login(credentials.email, credentials.password)
    start_session(response, user)
    return {"user": user}


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"success": True}


@router.get("/me", response_model=MeResponse)
async def me(
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store)
):
    """The signed-in user and every organization they belong to, with their role."""
    return AccountService(store).me(current_user.id)
