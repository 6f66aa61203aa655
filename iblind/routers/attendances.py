from fastapi import APIRouter, HTTPException, Depends, Path, Query
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
import logging

from ..auth.dependencies import get_current_actor, require_admin
from ..core.exceptions import IBlindError, to_http_exception
from ..models.intake_models import IntakeDraft
from ..models.user import Actor
from ..services.attendance_service import attendance_service
from ..services.audit_service import audit_service
from ..services.intake_wizard import validate_draft
from ..services.inventory_service import inventory_service
from ..services.specialist_service import specialist_service
from ..services.tenant_service import tenant_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/attendances",
    tags=["Attendances"],
    responses={404: {"description": "Not found"}}
)


class DeletionRequest(BaseModel):
    reason: str = Field(..., description="Justification recorded in the audit log")


class AttendanceSubmission(BaseModel):
    submission_id: str = Field(
        ..., pattern=r"^[A-Za-z0-9_-]{8,64}$",
        description="Client-generated key, reused on retries; becomes the attendance id"
    )
    draft: IntakeDraft


@router.post("", response_model=Dict[str, Any])
async def create_attendance(submission: AttendanceSubmission, actor: Actor = Depends(get_current_actor)):
    """Finalize a draft completed client-side (same rules as the intake wizard).

    Posting the same ``submission_id`` twice answers 409 and creates nothing.
    """
    draft = submission.draft
    try:
        roster = await specialist_service.get_roster(actor.tenant_id)
        success, items, error = await inventory_service.list_items(actor.tenant_id)
        if not success:
            raise HTTPException(status_code=503, detail=error)
        validate_draft(draft, roster=roster or None, inventory=items)

        tenant = await tenant_service.get_tenant_config(actor.tenant_id)
        attendance = await attendance_service.finalize(
            draft, tenant, actor, attendance_id=submission.submission_id
        )
        return {
            "success": True,
            "message": "Attendance created successfully",
            "data": attendance.model_dump(),
            "pending_effects": attendance.pending_effects,
        }
    except HTTPException:
        raise
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error creating attendance: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("", response_model=Dict[str, Any])
async def list_attendances(
    q: Optional[str] = Query(None, description="Search client, device, IMEI or warranty code"),
    specialist_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor)
):
    """History, most recent first; deleted records are hidden"""
    try:
        if q:
            attendances = await attendance_service.search_attendances(actor.tenant_id, q)
        else:
            attendances = await attendance_service.list_attendances(actor.tenant_id, specialist_id=specialist_id)
        return {
            "success": True,
            "data": [a.model_dump() for a in attendances],
            "count": len(attendances)
        }
    except IBlindError as e:
        raise to_http_exception(e)


@router.get("/audit", response_model=Dict[str, Any])
async def list_all_attendances(actor: Actor = Depends(require_admin)):
    """Audit view: every record, deleted ones included (Admin only)"""
    try:
        attendances = await attendance_service.list_attendances(actor.tenant_id, include_deleted=True)
        return {
            "success": True,
            "data": [a.model_dump() for a in attendances],
            "count": len(attendances)
        }
    except IBlindError as e:
        raise to_http_exception(e)


@router.get("/pending-effects", response_model=Dict[str, Any])
async def list_pending_effects(actor: Actor = Depends(require_admin)):
    """Stock deductions still queued after their attendance was saved (Admin only)"""
    try:
        effects = await attendance_service.list_pending_effects(actor.tenant_id)
        return {"success": True, "data": effects, "count": len(effects)}
    except IBlindError as e:
        raise to_http_exception(e)


@router.post("/pending-effects/retry", response_model=Dict[str, Any])
async def retry_pending_effects(actor: Actor = Depends(require_admin)):
    try:
        summary = await attendance_service.retry_pending_effects(actor.tenant_id)
        return {"success": True, **summary}
    except IBlindError as e:
        raise to_http_exception(e)


@router.get("/{attendance_id}", response_model=Dict[str, Any])
async def get_attendance(attendance_id: str = Path(..., description="Attendance ID"),
                         actor: Actor = Depends(get_current_actor)):
    try:
        attendance = await attendance_service.get_attendance(actor.tenant_id, attendance_id)
        return {"success": True, "data": attendance.model_dump()}
    except IBlindError as e:
        raise to_http_exception(e)


@router.post("/{attendance_id}/deletion", response_model=Dict[str, Any])
async def delete_attendance(attendance_id: str, payload: DeletionRequest,
                            actor: Actor = Depends(get_current_actor)):
    """Soft-delete with a mandatory justification"""
    try:
        audit_log = await audit_service.request_deletion(attendance_id, payload.reason, actor)
        return {
            "success": True,
            "message": "Attendance deleted",
            "audit_log": audit_log.model_dump()
        }
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting attendance {attendance_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
