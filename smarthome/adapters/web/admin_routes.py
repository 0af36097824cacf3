"""Admin console API: PIN login, bearer-token sessions, user management."""

import hmac
import logging
from typing import Optional

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from smarthome.adapters.storage.users import null_required_fields, public_user
from smarthome.adapters.web.state import AppState, get_state, require_admin
from smarthome.domain.models import ROLES, AdminSession
from smarthome.domain.policies import default_policies

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/api/admin", tags=["Admin"])


class AdminLoginRequest(BaseModel):
    email: Optional[str] = None
    pin: Optional[str] = None


class AdminUserCreateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: str = "member"
    relation: str = ""
    pin: Optional[str] = None


class AdminUserUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    relation: Optional[str] = None
    pin: Optional[str] = None


@admin_router.post("/login")
async def admin_login(req: AdminLoginRequest, state: AppState = Depends(get_state)):
    if not req.email or not req.pin:
        raise HTTPException(status_code=400, detail="email and pin required")
    try:
        row = await state.users.find_admin_by_email(req.email)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "admin login failed")
    if not row or not row["pin"] or not hmac.compare_digest(row["pin"].encode(), req.pin.encode()):
        logger.warning("Rejected admin login for %s", req.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user = public_user(row)
    token = state.sessions.create(user)
    return {"success": True, "user": user, "token": token}


@admin_router.post("/logout")
async def admin_logout(
    session: AdminSession = Depends(require_admin),
    state: AppState = Depends(get_state),
):
    state.sessions.revoke(session.token)
    return {"success": True}


@admin_router.get("/users", dependencies=[Depends(require_admin)])
async def admin_list_users(state: AppState = Depends(get_state)):
    try:
        users = await state.users.list_with_policies()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "admin users fetch failed")
    return {"users": users}


@admin_router.post("/users", dependencies=[Depends(require_admin)])
async def admin_create_user(req: AdminUserCreateRequest, state: AppState = Depends(get_state)):
    if not req.name:
        raise HTTPException(status_code=400, detail="name required")
    if req.role not in ROLES:
        raise HTTPException(status_code=400, detail="invalid role")
    try:
        user_id = await state.users.create(
            req.name, email=req.email, role=req.role, relation=req.relation, pin=req.pin
        )
    except aiosqlite.IntegrityError as e:
        raise HTTPException(status_code=409, detail=f"admin create user failed: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "admin create user failed")
    return {
        "success": True,
        "user": {
            "id": user_id,
            "name": req.name,
            "email": req.email,
            "role": req.role,
            "relation": req.relation,
        },
    }


@admin_router.patch("/users/{user_id}", dependencies=[Depends(require_admin)])
async def admin_update_user(
    user_id: int,
    req: AdminUserUpdateRequest,
    state: AppState = Depends(get_state),
):
    """Changing the role resets the user's policies to that role's defaults."""
    fields = req.model_dump(exclude_unset=True)
    if not fields:
        return {"success": True}
    nulls = null_required_fields(fields)
    if nulls:
        raise HTTPException(status_code=400, detail=f"{nulls[0]} cannot be null")
    if "role" in fields and fields["role"] not in ROLES:
        raise HTTPException(status_code=400, detail="invalid role")
    for key in ("email", "pin"):
        if key in fields:
            fields[key] = fields[key] or None
    policies = default_policies(fields["role"]) if "role" in fields else None
    try:
        await state.users.update(user_id, fields, policies=policies)
    except aiosqlite.IntegrityError as e:
        raise HTTPException(status_code=409, detail=f"admin update user failed: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "admin update user failed")
    return {"success": True}


@admin_router.delete("/users/{user_id}", dependencies=[Depends(require_admin)])
async def admin_delete_user(user_id: int, state: AppState = Depends(get_state)):
    try:
        await state.users.delete(user_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "admin delete user failed")
    return {"success": True}
