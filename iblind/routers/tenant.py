from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Dict, Any, Optional
import logging

from ..auth.dependencies import get_current_actor, require_admin
from ..core.exceptions import IBlindError, to_http_exception
from ..models.database_models import TenantConfigUpdate
from ..models.user import Actor
from ..services.tenant_service import tenant_service
from ..services.warranty_id_service import warranty_id_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tenant",
    tags=["Store Settings"],
)


@router.get("/config", response_model=Dict[str, Any])
async def get_tenant_config(actor: Actor = Depends(get_current_actor)):
    try:
        tenant = await tenant_service.get_tenant_config(actor.tenant_id)
        return {"success": True, "data": tenant.model_dump()}
    except IBlindError as e:
        raise to_http_exception(e)


@router.patch("/config", response_model=Dict[str, Any])
async def update_tenant_config(payload: TenantConfigUpdate, actor: Actor = Depends(require_admin)):
    """Update company name, warranty rules and branding (Admin only)"""
    try:
        tenant = await tenant_service.update_tenant_config(actor.tenant_id, payload, actor)
        return {
            "success": True,
            "message": "Settings saved",
            "data": tenant.model_dump()
        }
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating tenant settings: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/backup", response_model=Dict[str, Any])
async def export_backup(actor: Actor = Depends(require_admin)):
    """Download history, inventory and settings as JSON (Admin only)"""
    try:
        backup = await tenant_service.export_backup(actor.tenant_id)
        logger.info(f"Backup exported for tenant {actor.tenant_id} by {actor.uid}")
        return {"success": True, "data": backup}
    except IBlindError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error exporting backup: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/warranty-counter", response_model=Dict[str, Any])
async def get_warranty_counter(year: Optional[int] = Query(None, ge=2000),
                               actor: Actor = Depends(require_admin)):
    """Last warranty sequence number issued this year (Admin only)"""
    try:
        counter = await warranty_id_service.get_current_counter(actor.tenant_id, year)
        return {"success": True, "counter": counter}
    except Exception as e:
        logger.error(f"Error reading warranty counter: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
