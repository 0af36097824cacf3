"""Door lock state routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from smarthome.adapters.web.state import AppState, get_state

door_router = APIRouter(prefix="/api/door", tags=["Doors"])


class DoorToggleRequest(BaseModel):
    door: Optional[str] = None


@door_router.get("")
async def door_states(state: AppState = Depends(get_state)):
    """Map of door name to locked flag."""
    try:
        return await state.doors.states()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "door query failed")


@door_router.post("/toggle")
async def toggle_door(req: DoorToggleRequest, state: AppState = Depends(get_state)):
    if not req.door:
        raise HTTPException(status_code=400, detail="door required")
    try:
        locked = await state.doors.toggle(req.door)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "toggle failed")
    return {"success": True, "locked": locked}


@door_router.post("/lock_all")
async def lock_all(state: AppState = Depends(get_state)):
    try:
        await state.doors.set_all(True)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "lock all failed")
    return {"success": True}


@door_router.post("/unlock_all")
async def unlock_all(state: AppState = Depends(get_state)):
    try:
        await state.doors.set_all(False)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "unlock all failed")
    return {"success": True}
