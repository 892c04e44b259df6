"""
auth/dependencies.py -- FastAPI Depends() helpers for the account routes.

Services and the store live on app.state (built in the api/main.py lifespan);
these helpers hand them to route handlers so routes never reach into
app.state themselves and tests can swap them via the lifespan.

get_bearer_token() only extracts the raw token. Verification is the services'
job, so a bad or expired token surfaces as TokenError from the service layer.

A request to a protected route with no Authorization header at all is answered
with 404 {"message": "User not found"}. Clients depend on that status and body,
so it is kept even though 401 would be the textbook answer.

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. Nothing else in auth/ does.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.account import AccountService
from auth.service import AuthService
from auth.store import UserStore


def get_bearer_token(request: Request) -> str:
    """Return the token part of `Authorization: Bearer <token>`.

    Any header whose second space-separated part is missing yields "", which
    the token verifier rejects as invalid.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=404, detail={"message": "User not found"})
    parts = auth_header.split(" ")
    return parts[1] if len(parts) > 1 else ""


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store
