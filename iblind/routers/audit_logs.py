from fastapi import APIRouter, Depends, Query
from typing import Dict, Any, Optional
import logging

from ..auth.dependencies import require_admin
from ..core.exceptions import IBlindError, to_http_exception
from ..models.user import Actor
from ..services.audit_service import audit_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("", response_model=Dict[str, Any])
async def list_audit_logs(
    target_id: Optional[str] = Query(None, description="Only entries about this attendance"),
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(require_admin)
):
    """Deletion audit trail (Admin only)"""
    try:
        logs = await audit_service.list_audit_logs(actor.tenant_id, target_id=target_id, limit=limit)
        return {
            "success": True,
            "data": [log.model_dump() for log in logs],
            "count": len(logs)
        }
    except IBlindError as e:
        raise to_http_exception(e)
