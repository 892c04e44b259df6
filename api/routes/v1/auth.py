"""
api/routes/v1/auth.py -- Sign-up, sign-in, sign-out and token refresh endpoints.

Routes:
  POST /api/v1/auth/signup         -- register; emails a verification code
  POST /api/v1/auth/signin         -- password login; returns access + refresh tokens
  POST /api/v1/auth/signout        -- drop the session for one device (Bearer)
  POST /api/v1/auth/refresh-token  -- new access token from a device's refresh token

Handlers are thin: they pull fields out of the JSON body, call AuthService and
wrap the result in an envelope. Every failure is a core.errors type raised by
the service and rendered by the handler in api/main.py.

Security:
  [C1] Sign-in failures share one message and one bcrypt cost (see auth/service.py).
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from api.models import (
    AccessTokenData,
    AccessTokenEnvelope,
    JsonBody,
    MessageResponse,
    SignInData,
    SignInEnvelope,
    UserEnvelope,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_bearer_token
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/signup:         public
# - POST /api/v1/auth/signin:         public
# - POST /api/v1/auth/signout:        Bearer access token
# - POST /api/v1/auth/refresh-token:  public -- the refresh token is the credential
router = APIRouter()


@router.post("/auth/signup", response_model=UserEnvelope, status_code=201)
async def sign_up(body: JsonBody = None, service: AuthService = Depends(get_auth_service)) -> UserEnvelope:
    """Create an unverified account and send the verification code by email."""
    user = await service.sign_up(body or {})
    return UserEnvelope(message="Successfully signed up", data=UserResponse.from_user(user))


@router.post("/auth/signin", response_model=SignInEnvelope)
async def sign_in(
    response: Response,
    body: JsonBody = None,
    service: AuthService = Depends(get_auth_service),
) -> SignInEnvelope:
    """Authenticate with email and password and open a session for the device.

    Returns the same 401 for an unknown email and a wrong password.
    """
    body = body or {}
    result = await service.sign_in(
        body,
        body.get("device_id"),
        body.get("device_name"),
        body.get("device_model"),
    )
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return SignInEnvelope(
        message="Successfully signed in",
        data=SignInData(
            user=UserResponse.from_user(result.user),
            access_token=result.access_token,
            refresh_token=result.refresh_token,
        ),
    )


@router.post("/auth/signout", response_model=MessageResponse)
async def sign_out(
    body: JsonBody = None,
    access_token: str = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """End the session for the device named in the body.

    A second sign-out for the same device is a 404, not a silent success.
    """
    await service.sign_out(access_token, (body or {}).get("device_id"))
    return MessageResponse(message="Successfully signed out")


@router.post("/auth/refresh-token", response_model=AccessTokenEnvelope)
async def refresh_token(
    response: Response,
    body: JsonBody = None,
    service: AuthService = Depends(get_auth_service),
) -> AccessTokenEnvelope:
    """Exchange a device's refresh token for a new access token."""
    body = body or {}
    access_token = await service.refresh_token(body.get("user_id"), body.get("device_id"), body.get("refresh_token"))
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AccessTokenEnvelope(
        message="Successfully refreshed access token",
        data=AccessTokenData(access_token=access_token),
    )
