"""Member registration, face/PIN authentication and member management."""

import json
import logging
from typing import Any, Dict, Optional

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from smarthome.adapters.storage.users import DuplicateFaceError, null_required_fields
from smarthome.adapters.web.state import AppState, get_state
from smarthome.domain.models import ROLES
from smarthome.domain.policies import default_policies

logger = logging.getLogger(__name__)

member_router = APIRouter(prefix="/api", tags=["Members"])


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: str = "member"
    relation: str = ""
    pin: Optional[str] = None
    preferred_login: str = "pin"
    template: Any = None
    faceId: Optional[str] = None


class FaceAuthRequest(BaseModel):
    template: Any = None


class PinAuthRequest(BaseModel):
    pin: Optional[str] = None


class MemberCreateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: str = "member"
    relation: str = "member"
    pin: Optional[str] = None


class MemberUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    relation: Optional[str] = None
    pin: Optional[str] = None
    preferred_login: Optional[str] = None
    policies: Optional[Dict[str, Any]] = None


def _check_role(role: Optional[str]) -> None:
    if role is not None and role not in ROLES:
        raise HTTPException(status_code=400, detail="invalid role")


def _template_text(template: Any) -> Optional[str]:
    if isinstance(template, str):
        return template or None
    if isinstance(template, dict):
        return json.dumps(template)
    return None


@member_router.post("/register")
async def register(req: RegisterRequest, state: AppState = Depends(get_state)):
    """Create a user together with their face template."""
    template = _template_text(req.template)
    if not req.name or not template:
        raise HTTPException(status_code=400, detail="name and template required")
    _check_role(req.role)
    try:
        user = await state.users.register_with_face(
            name=req.name,
            template=template,
            email=req.email,
            role=req.role,
            relation=req.relation,
            pin=req.pin,
            preferred_login=req.preferred_login,
            face_id=req.faceId,
        )
    except DuplicateFaceError as e:
        return JSONResponse(status_code=409, content={"detail": str(e), "user": e.user})
    except aiosqlite.IntegrityError as e:
        raise HTTPException(status_code=409, detail=f"register failed: {e}")
    except Exception as e:
        logger.error("Register failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e) or "register failed")
    return {"success": True, "user": user}


@member_router.post("/auth/face")
async def auth_face(req: FaceAuthRequest, state: AppState = Depends(get_state)):
    template = _template_text(req.template)
    if not template:
        raise HTTPException(status_code=400, detail="template required")
    try:
        user = await state.users.find_by_face(template)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "auth failed")
    if user is None:
        return JSONResponse(
            status_code=404, content={"success": False, "detail": "Face not recognized"}
        )
    return {"success": True, "user": user}


@member_router.post("/auth/pin")
async def auth_pin(req: PinAuthRequest, state: AppState = Depends(get_state)):
    if not req.pin:
        raise HTTPException(status_code=400, detail="pin required")
    try:
        user = await state.users.find_by_pin(req.pin)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "auth failed")
    if user is None:
        return JSONResponse(status_code=401, content={"success": False, "detail": "Invalid PIN"})
    return {"success": True, "user": user}


@member_router.get("/users")
async def list_users(state: AppState = Depends(get_state)):
    try:
        return await state.users.list_with_policies()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "query failed")


@member_router.post("/members")
async def add_member(req: MemberCreateRequest, state: AppState = Depends(get_state)):
    if not req.name:
        raise HTTPException(status_code=400, detail="name required")
    _check_role(req.role)
    try:
        user_id = await state.users.create(
            req.name, email=req.email, role=req.role, relation=req.relation, pin=req.pin
        )
    except aiosqlite.IntegrityError as e:
        raise HTTPException(status_code=409, detail=f"add member failed: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "add member failed")
    return {
        "id": user_id,
        "name": req.name,
        "email": req.email,
        "role": req.role,
        "relation": req.relation,
        "policies": default_policies(req.role),
    }


@member_router.patch("/members/{member_id}")
async def update_member(
    member_id: int,
    req: MemberUpdateRequest,
    state: AppState = Depends(get_state),
):
    fields = req.model_dump(exclude_unset=True)
    policies = fields.pop("policies", None)
    nulls = null_required_fields(fields)
    if nulls:
        raise HTTPException(status_code=400, detail=f"{nulls[0]} cannot be null")
    _check_role(fields.get("role"))
    if "email" in fields:
        fields["email"] = fields["email"] or None
    try:
        await state.users.update(member_id, fields, policies=policies)
    except aiosqlite.IntegrityError as e:
        raise HTTPException(status_code=409, detail=f"update failed: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "update failed")
    return {"success": True}


@member_router.delete("/members/{member_id}")
async def delete_member(member_id: int, state: AppState = Depends(get_state)):
    try:
        await state.users.delete(member_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "delete failed")
    return {"success": True}
