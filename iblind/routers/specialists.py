from fastapi import APIRouter, HTTPException, Depends
from typing import Dict, Any
import logging

from ..auth.dependencies import get_current_actor, require_admin
from ..core.exceptions import IBlindError, to_http_exception
from ..models.user import Actor, SpecialistCreate
from ..services.specialist_service import specialist_service
from ..services.stats_service import stats_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/specialists",
    tags=["Specialists"],
    responses={404: {"description": "Not found"}}
)


@router.get("", response_model=Dict[str, Any])
async def list_specialists(actor: Actor = Depends(get_current_actor)):
    """Team roster with each specialist's service count and revenue"""
    try:
        specialists = await specialist_service.list_specialists(actor.tenant_id)
        stats = await stats_service.get_specialist_stats(actor.tenant_id, [s['id'] for s in specialists])
        data = [
            {**{k: v for k, v in s.items() if k != '_doc_id'}, "stats": stats.get(s['id'])}
            for s in specialists
        ]
        return {"success": True, "data": data, "count": len(data)}
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing specialists: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("", response_model=Dict[str, Any])
async def add_specialist(payload: SpecialistCreate, actor: Actor = Depends(require_admin)):
    """Register a specialist (Admin only)"""
    try:
        user = await specialist_service.add_specialist(payload, actor)
        return {
            "success": True,
            "message": "Specialist added successfully",
            "data": user.model_dump()
        }
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error adding specialist: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{specialist_id}", response_model=Dict[str, Any])
async def delete_specialist(specialist_id: str, actor: Actor = Depends(require_admin)):
    """Remove a specialist account (Admin only)"""
    try:
        released = await specialist_service.delete_specialist(specialist_id, actor)
        return {"success": True, "message": "Specialist removed", "released_items": released}
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting specialist {specialist_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
