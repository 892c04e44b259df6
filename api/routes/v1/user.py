"""
api/routes/v1/user.py -- OTP, password and profile endpoints.

Routes:
  PUT /api/v1/user/send-otp         -- email a fresh verification code
  PUT /api/v1/user/verify-otp       -- consume a code; marks the account verified
  PUT /api/v1/user/update-password  -- change password (Bearer)
  GET /api/v1/user/profile          -- current user's record (Bearer)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import JsonBody, MessageResponse, UserEnvelope, UserResponse
from auth.account import AccountService
from auth.dependencies import get_account_service, get_bearer_token

router = APIRouter()


@router.put("/user/send-otp", response_model=MessageResponse)
async def send_otp(body: JsonBody = None, service: AccountService = Depends(get_account_service)) -> MessageResponse:
    """Replace any pending code with a new one and email it."""
    await service.send_otp((body or {}).get("email"))
    return MessageResponse(message="OTP code has been sent to your email")


@router.put("/user/verify-otp", response_model=MessageResponse)
async def verify_otp(body: JsonBody = None, service: AccountService = Depends(get_account_service)) -> MessageResponse:
    body = body or {}
    await service.verify_otp(body.get("email"), body.get("otp_code"))
    return MessageResponse(message="Successfully verified OTP code")


@router.put("/user/update-password", response_model=MessageResponse)
async def update_password(
    body: JsonBody = None,
    access_token: str = Depends(get_bearer_token),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Set a new password. The password policy is checked before the token."""
    await service.update_password(access_token, body or {})
    return MessageResponse(message="Successfully updated password")


@router.get("/user/profile", response_model=UserEnvelope)
async def get_profile(
    access_token: str = Depends(get_bearer_token),
    service: AccountService = Depends(get_account_service),
) -> UserEnvelope:
    user = await service.get_user_profile(access_token)
    return UserEnvelope(message="User data fetched", data=UserResponse.from_user(user))
