# app/api/v1/auth.py
import logging
from fastapi import APIRouter, Depends

from app import schemas
from app.services.auth_service import AuthService
from app.api.dependencies import get_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=schemas.TokenResponse)
async def login_user(
    request: schemas.LoginRequest,
    auth_service: AuthService = Depends(get_service(AuthService))
):
    """
    Sign in with email and password.

    The tokens are issued by the identity provider; the access token is
    what every chat endpoint and the realtime hub verify.
    """
    tokens = auth_service.sign_in(email=request.email, password=request.password)
    logger.info(f"User {tokens['user_id']} signed in")
    return tokens


@router.post("/refresh", response_model=schemas.TokenResponse)
async def refresh_token(
    request: schemas.RefreshTokenRequest,
    auth_service: AuthService = Depends(get_service(AuthService))
):
    """
    Exchange a refresh token for a new session.

    The client calls this once when a request comes back 401, then retries.
    """
    return auth_service.refresh_token(request.refresh_token)
