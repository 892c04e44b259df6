"""
api/routes/v1/role.py -- Role lookup table CRUD.

Routes:
  POST   /api/v1/role/create       -- create a role
  GET    /api/v1/role              -- list roles (404 when there are none)
  GET    /api/v1/role/{id}         -- one role
  DELETE /api/v1/role/delete/{id}  -- delete a role (409 while users hold it)

No authentication: these routes are meant to sit behind an admin-only gateway.
Roles carry no invariant beyond a unique name, so handlers talk to the store
directly instead of going through a service.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError

from api.models import JsonBody, MessageResponse, RoleEnvelope, RoleListEnvelope, RoleResponse
from auth.dependencies import get_user_store
from auth.store import UserStore
from auth.validators import RoleInput, validate
from core.errors import ConflictError, NotFoundError

router = APIRouter()


@router.post("/role/create", response_model=RoleEnvelope, status_code=201)
async def create_role(body: JsonBody = None, store: UserStore = Depends(get_user_store)) -> RoleEnvelope:
    data = validate(RoleInput, body or {}).unwrap()
    try:
        role_id = store.create_role(data.role_name)
    except IntegrityError as exc:
        raise ConflictError(f"Role {data.role_name} already exists") from exc
    return RoleEnvelope(message="Successfully created role", data=RoleResponse.from_role(store.get_role(role_id)))


@router.get("/role", response_model=RoleListEnvelope)
async def list_roles(store: UserStore = Depends(get_user_store)) -> RoleListEnvelope:
    roles = store.list_roles()
    if not roles:
        raise NotFoundError("Roles not found")
    return RoleListEnvelope(message="Successfully fetched roles", data=[RoleResponse.from_role(r) for r in roles])


@router.get("/role/{role_id}", response_model=RoleEnvelope)
async def get_role(role_id: int, store: UserStore = Depends(get_user_store)) -> RoleEnvelope:
    role = store.get_role(role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return RoleEnvelope(message="Successfully fetched role", data=RoleResponse.from_role(role))


@router.delete("/role/delete/{role_id}", response_model=MessageResponse)
async def delete_role(role_id: int, store: UserStore = Depends(get_user_store)) -> MessageResponse:
    role = store.get_role(role_id)
    if role is None:
        raise NotFoundError("Role not found")
    try:
        store.delete_role(role_id)
    except IntegrityError as exc:
        raise ConflictError(f"Role {role.role_name} is assigned to users") from exc
    return MessageResponse(message="Successfully deleted role")
