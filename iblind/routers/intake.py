from fastapi import APIRouter, HTTPException, Depends, Path
from typing import Dict, Any
import logging

from ..auth.dependencies import get_current_actor
from ..core.exceptions import IBlindError, to_http_exception
from ..models.intake_models import IntakeUpdate, PartUpdate, PhotoUpload
from ..models.user import Actor
from ..services import intake_session_manager as sessions_module

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/intake",
    tags=["New Service Intake"],
    responses={404: {"description": "Not found"}}
)


def _manager():
    return sessions_module.intake_session_manager


def _state(session_id: str, wizard) -> Dict[str, Any]:
    return {"success": True, "session_id": session_id, **wizard.snapshot()}


@router.post("", response_model=Dict[str, Any])
async def start_intake(actor: Actor = Depends(get_current_actor)):
    """Open a new intake wizard"""
    try:
        session_id = await _manager().start(actor)
        return _state(session_id, _manager().get(session_id, actor))
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error starting intake: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{session_id}", response_model=Dict[str, Any])
async def get_intake(session_id: str = Path(..., description="Intake session ID"),
                     actor: Actor = Depends(get_current_actor)):
    try:
        return _state(session_id, _manager().get(session_id, actor))
    except IBlindError as e:
        raise to_http_exception(e)


@router.patch("/{session_id}", response_model=Dict[str, Any])
async def update_intake(session_id: str, payload: IntakeUpdate,
                        actor: Actor = Depends(get_current_actor)):
    """Edit draft fields; the total is recomputed on every change"""
    try:
        wizard = _manager().get(session_id, actor)
        wizard.update(**payload.changes())
        return _state(session_id, wizard)
    except IBlindError as e:
        raise to_http_exception(e)


@router.put("/{session_id}/parts/{part}", response_model=Dict[str, Any])
async def set_intake_part(session_id: str, part: str, payload: PartUpdate,
                          actor: Actor = Depends(get_current_actor)):
    """Mark the condition of screen, back, cameras or buttons"""
    try:
        wizard = _manager().get(session_id, actor)
        wizard.set_part(part, payload.has_damage, payload.notes)
        return _state(session_id, wizard)
    except IBlindError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/photos", response_model=Dict[str, Any])
async def add_intake_photo(session_id: str, payload: PhotoUpload,
                           actor: Actor = Depends(get_current_actor)):
    try:
        wizard = _manager().get(session_id, actor)
        wizard.add_photo(payload.uri)
        return _state(session_id, wizard)
    except IBlindError as e:
        raise to_http_exception(e)


@router.delete("/{session_id}/photos/{index}", response_model=Dict[str, Any])
async def remove_intake_photo(session_id: str, index: int,
                              actor: Actor = Depends(get_current_actor)):
    try:
        wizard = _manager().get(session_id, actor)
        wizard.remove_photo(index)
        return _state(session_id, wizard)
    except IBlindError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/next", response_model=Dict[str, Any])
async def next_intake_step(session_id: str, actor: Actor = Depends(get_current_actor)):
    """Validate the current step and advance; on the signature step this finalizes"""
    try:
        wizard = _manager().get(session_id, actor)
        attendance = await _manager().advance(session_id, actor)
        if attendance is None:
            return _state(session_id, wizard)
        return {
            "success": True,
            "completed": True,
            "message": "Attendance created successfully",
            "data": attendance.model_dump(),
            "pending_effects": attendance.pending_effects,
        }
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error advancing intake {session_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{session_id}/back", response_model=Dict[str, Any])
async def previous_intake_step(session_id: str, actor: Actor = Depends(get_current_actor)):
    """Go back one step; on the first step this cancels the intake"""
    try:
        wizard = _manager().get(session_id, actor)
        wizard.back()
        if wizard.is_closed:
            return {"success": True, "cancelled": True}
        return _state(session_id, wizard)
    except IBlindError as e:
        raise to_http_exception(e)


@router.delete("/{session_id}", response_model=Dict[str, Any])
async def cancel_intake(session_id: str, actor: Actor = Depends(get_current_actor)):
    """Discard the draft"""
    try:
        wizard = _manager().get(session_id, actor)
        wizard.cancel()
        return {"success": True, "cancelled": True}
    except IBlindError as e:
        raise to_http_exception(e)
