from fastapi import APIRouter, HTTPException, Depends, Query, Path
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
from ..auth.dependencies import get_current_actor, require_admin
from ..models.database_models import InventoryItem, InventoryItemUpdate
from ..models.user import Actor
from ..services.inventory_service import inventory_service
from ..services.specialist_service import specialist_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/inventory",
    tags=["Inventory Management"],
    responses={404: {"description": "Not found"}}
)


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)
    reason: Optional[str] = None


class AdjustRequest(BaseModel):
    new_quantity: int = Field(..., ge=0)
    reason: Optional[str] = None


class AssignRequest(BaseModel):
    specialist_id: Optional[str] = Field(None, description="Leave empty to return the item to central stock")


# ═══════════════════════════════════════════════════════════════════════════
# INVENTORY ITEM MANAGEMENT ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════


@router.post("/items", response_model=Dict[str, Any])
async def create_inventory_item(item_data: InventoryItem, actor: Actor = Depends(require_admin)):
    """Create a new inventory item (Admin only)"""
    try:
        success, item_id, error = await inventory_service.create_item(item_data, actor)

        if success:
            return {
                "success": True,
                "message": "Inventory item created successfully",
                "item_id": item_id
            }
        else:
            raise HTTPException(status_code=400, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating inventory item: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/items", response_model=Dict[str, Any])
async def list_inventory_items(
    specialist_id: Optional[str] = Query(None, description="Only items in this specialist's personal stock"),
    actor: Actor = Depends(get_current_actor)
):
    try:
        success, items, error = await inventory_service.list_items(actor.tenant_id, specialist_id)

        if success:
            return {"success": True, "data": items, "count": len(items)}
        else:
            raise HTTPException(status_code=503, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing inventory items: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/items/critical", response_model=Dict[str, Any])
async def list_critical_items(actor: Actor = Depends(get_current_actor)):
    """Items at or below their minimum stock"""
    try:
        success, items, error = await inventory_service.list_critical_items(actor.tenant_id)

        if success:
            return {"success": True, "data": items, "count": len(items)}
        else:
            raise HTTPException(status_code=503, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing critical items: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/items/{item_id}", response_model=Dict[str, Any])
async def get_inventory_item(
    item_id: str = Path(..., description="Inventory item ID or SKU"),
    actor: Actor = Depends(get_current_actor)
):
    """Get inventory item by ID or SKU"""
    try:
        success, item_data, error = await inventory_service.get_item(actor.tenant_id, item_id)

        if success and item_data:
            return {
                "success": True,
                "data": item_data
            }
        else:
            raise HTTPException(status_code=404, detail=error or "Item not found")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting inventory item {item_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/items/{item_id}", response_model=Dict[str, Any])
async def update_inventory_item(
    item_id: str,
    update_data: InventoryItemUpdate,
    actor: Actor = Depends(require_admin)
):
    """Update inventory item details (Admin only)"""
    try:
        success, error = await inventory_service.update_item(actor.tenant_id, item_id, update_data)

        if success:
            return {
                "success": True,
                "message": "Inventory item updated successfully"
            }
        else:
            raise HTTPException(status_code=400, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating inventory item {item_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/items/{item_id}/assignment", response_model=Dict[str, Any])
async def assign_inventory_item(item_id: str, payload: AssignRequest,
                                actor: Actor = Depends(require_admin)):
    """Move an item to a specialist's personal stock (Admin only)"""
    try:
        specialist = None
        if payload.specialist_id:
            roster = await specialist_service.get_roster(actor.tenant_id)
            specialist = next((s for s in roster if s.get('id') == payload.specialist_id), None)
            if not specialist:
                raise HTTPException(status_code=404, detail="Specialist not found")

        success, error = await inventory_service.assign_to_specialist(actor.tenant_id, item_id, specialist)

        if success:
            return {"success": True, "message": "Inventory item assignment updated"}
        else:
            raise HTTPException(status_code=400, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error assigning inventory item {item_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


# ═══════════════════════════════════════════════════════════════════════════
# STOCK MANAGEMENT ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════


@router.post("/items/{item_id}/restock", response_model=Dict[str, Any])
async def restock_inventory_item(item_id: str, payload: RestockRequest,
                                 actor: Actor = Depends(require_admin)):
    """Add stock to an item (Admin only)"""
    try:
        success, error = await inventory_service.restock_item(
            actor.tenant_id, item_id, payload.quantity, actor, payload.reason
        )

        if success:
            return {
                "success": True,
                "message": f"Added {payload.quantity} units to inventory"
            }
        else:
            raise HTTPException(status_code=400, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error restocking item {item_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/items/{item_id}/adjust", response_model=Dict[str, Any])
async def adjust_inventory_stock(item_id: str, payload: AdjustRequest,
                                 actor: Actor = Depends(require_admin)):
    """Set the stock to an exact quantity after a count (Admin only)"""
    try:
        success, error = await inventory_service.adjust_stock(
            actor.tenant_id, item_id, payload.new_quantity, actor, payload.reason
        )

        if success:
            return {
                "success": True,
                "message": f"Stock adjusted to {payload.new_quantity}"
            }
        else:
            raise HTTPException(status_code=400, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adjusting stock for {item_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/movements", response_model=Dict[str, Any])
async def list_stock_movements(
    item_id: Optional[str] = Query(None, description="Filter by item"),
    actor: Actor = Depends(get_current_actor)
):
    try:
        success, movements, error = await inventory_service.list_movements(actor.tenant_id, item_id)

        if success:
            return {"success": True, "data": movements, "count": len(movements)}
        else:
            raise HTTPException(status_code=503, detail=error)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing stock movements: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
