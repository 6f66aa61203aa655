from fastapi import APIRouter, HTTPException, Depends
from typing import Dict, Any
import logging

from ..auth.dependencies import get_current_actor
from ..core.exceptions import IBlindError, to_http_exception
from ..models.user import Actor
from ..services.stats_service import stats_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=Dict[str, Any])
async def get_dashboard_stats(actor: Actor = Depends(get_current_actor)):
    """
    Revenue, service count, average ticket, critical stock and services today.
    Recomputed from the stored collections on every request.
    """
    try:
        stats = await stats_service.get_dashboard_stats(actor.tenant_id)
        return {"success": True, "data": stats}
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error computing dashboard stats: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
