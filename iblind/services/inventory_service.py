from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime, timezone
import logging
import secrets
import string
import uuid

from google.cloud.firestore_v1 import Increment

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..models.database_models import InventoryItem, InventoryItemUpdate, MovementType, StockMovement
from ..models.user import Actor

logger = logging.getLogger(__name__)

SKU_ALPHABET = string.ascii_uppercase + string.digits
SKU_ATTEMPTS = 5


class InventoryService:
    """Films, cases and accessories stock for a tenant"""

    def __init__(self, db=None):
        self.db = db or database_service

    # ═══════════════════════════════════════════════════════════════════════════
    # INVENTORY ITEM MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════════

    async def _generate_sku(self, tenant_id: str) -> Optional[str]:
        for _ in range(SKU_ATTEMPTS):
            sku = "SKU-" + "".join(secrets.choice(SKU_ALPHABET) for _ in range(4))
            success, existing, error = await self.db.query_documents(
                COLLECTIONS['inventory'],
                [('tenant_id', '==', tenant_id), ('sku', '==', sku)],
                limit=1
            )
            if success and not existing:
                return sku
        return None

    async def create_item(self, item: InventoryItem, actor: Actor) -> Tuple[bool, Optional[str], Optional[str]]:
        """Create a new inventory item with a generated SKU"""
        try:
            sku = await self._generate_sku(actor.tenant_id)
            if not sku:
                return False, None, "Could not generate a unique SKU"

            now = datetime.now(timezone.utc)
            item_id = uuid.uuid4().hex
            item_data = item.model_dump(exclude={'id'})
            item_data.update({
                'tenant_id': actor.tenant_id,
                'sku': sku,
                'last_entry_date': now,
                'created_at': now,
                'updated_at': now,
            })

            success, _, error = await self.db.create_document(
                COLLECTIONS['inventory'],
                item_data,
                item_id,
                validate=True
            )
            if not success:
                return False, None, f"Failed to create inventory item: {error}"

            if item_data.get('current_stock', 0) > 0:
                await self._log_movement(
                    tenant_id=actor.tenant_id,
                    item_id=item_id,
                    movement_type=MovementType.IN,
                    quantity=item_data['current_stock'],
                    previous_stock=0,
                    new_stock=item_data['current_stock'],
                    actor=actor,
                    reason="Initial stock creation"
                )

            logger.info(f"Created inventory item {sku} ({item.brand} {item.model})")
            return True, item_id, None

        except Exception as e:
            error_msg = f"Error creating inventory item: {str(e)}"
            logger.error(error_msg)
            return False, None, error_msg

    async def get_item(self, tenant_id: str, item_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        """Get inventory item by document ID or SKU, scoped to the tenant"""
        success, item, error = await self.db.get_document(COLLECTIONS['inventory'], item_id)
        if not success:
            return False, None, error
        if item and item.get('tenant_id') == tenant_id:
            return True, item, None

        success, items, error = await self.db.query_documents(
            COLLECTIONS['inventory'],
            [('tenant_id', '==', tenant_id), ('sku', '==', item_id)],
            limit=1
        )
        if not success:
            return False, None, error
        return True, (items[0] if items else None), None

    async def update_item(self, tenant_id: str, item_id: str, update: InventoryItemUpdate) -> Tuple[bool, Optional[str]]:
        """Update descriptive fields (not stock levels)"""
        success, current_item, error = await self.get_item(tenant_id, item_id)
        if not success:
            return False, error
        if not current_item:
            return False, f"Item not found: {item_id}"

        update_data = update.model_dump(exclude_unset=True)
        if not update_data:
            return True, None
        update_data['updated_at'] = datetime.now(timezone.utc)

        return await self.db.update_document(COLLECTIONS['inventory'], current_item['_doc_id'], update_data)

    async def list_items(self, tenant_id: str, specialist_id: Optional[str] = None) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        """All items of a tenant, or one specialist's personal stock"""
        filters = [('tenant_id', '==', tenant_id)]
        if specialist_id:
            filters.append(('assigned_specialist_id', '==', specialist_id))
        return await self.db.query_documents(COLLECTIONS['inventory'], filters)

    async def list_critical_items(self, tenant_id: str) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        """Items at or below their minimum stock"""
        success, items, error = await self.list_items(tenant_id)
        if not success:
            return False, [], error
        critical = [
            item for item in items
            if int(item.get('current_stock') or 0) <= int(item.get('min_stock') or 0)
        ]
        return True, critical, None

    async def assign_to_specialist(self, tenant_id: str, item_id: str,
                                   specialist: Optional[Dict[str, Any]]) -> Tuple[bool, Optional[str]]:
        """Move an item to a specialist's personal stock, or back to the central pool"""
        success, current_item, error = await self.get_item(tenant_id, item_id)
        if not success:
            return False, error
        if not current_item:
            return False, f"Item not found: {item_id}"

        return await self.db.update_document(
            COLLECTIONS['inventory'],
            current_item['_doc_id'],
            {
                'assigned_specialist_id': specialist.get('id') if specialist else None,
                'assigned_specialist_name': specialist.get('name') if specialist else None,
                'updated_at': datetime.now(timezone.utc),
            }
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # STOCK MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════════

    async def restock_item(self, tenant_id: str, item_id: str, quantity: int, actor: Actor,
                           reason: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        """Add stock to inventory"""
        if quantity <= 0:
            return False, "Quantity must be positive"

        success, current_item, error = await self.get_item(tenant_id, item_id)
        if not success:
            return False, error
        if not current_item:
            return False, f"Item not found: {item_id}"

        now = datetime.now(timezone.utc)
        current_stock = int(current_item.get('current_stock') or 0)
        success, error = await self.db.update_document(
            COLLECTIONS['inventory'],
            current_item['_doc_id'],
            {
                'current_stock': Increment(quantity),
                'last_entry_date': now,
                'updated_at': now,
            }
        )
        if not success:
            return False, f"Failed to restock: {error}"

        await self._log_movement(
            tenant_id=tenant_id,
            item_id=current_item['_doc_id'],
            movement_type=MovementType.IN,
            quantity=quantity,
            previous_stock=current_stock,
            new_stock=current_stock + quantity,
            actor=actor,
            reason=reason or "Stock replenishment"
        )
        return True, None

    async def adjust_stock(self, tenant_id: str, item_id: str, new_quantity: int, actor: Actor,
                           reason: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        """Adjust stock to a specific quantity (for corrections)"""
        if new_quantity < 0:
            return False, "Stock cannot be negative"

        success, current_item, error = await self.get_item(tenant_id, item_id)
        if not success:
            return False, error
        if not current_item:
            return False, f"Item not found: {item_id}"

        current_stock = int(current_item.get('current_stock') or 0)
        success, error = await self.db.update_document(
            COLLECTIONS['inventory'],
            current_item['_doc_id'],
            {'current_stock': new_quantity, 'updated_at': datetime.now(timezone.utc)}
        )
        if not success:
            return False, f"Failed to adjust stock: {error}"

        await self._log_movement(
            tenant_id=tenant_id,
            item_id=current_item['_doc_id'],
            movement_type=MovementType.ADJUST,
            quantity=new_quantity - current_stock,
            previous_stock=current_stock,
            new_stock=new_quantity,
            actor=actor,
            reason=reason or f"Stock adjustment from {current_stock} to {new_quantity}"
        )
        return True, None

    async def consume_for_attendance(self, tenant_id: str, item_id: str, attendance_id: str,
                                     actor: Actor) -> Tuple[bool, Optional[str], Optional[str]]:
        """Deduct one unit for an attendance, floored at 0.

        The decrement and its AUTO_DEDUCTION movement are written in one
        transaction keyed on the attendance, so repeating the call for the
        same attendance does not deduct twice.

        Returns (success, outcome, error) where outcome is one of
        "deducted", "already_applied" or "not_found".
        """
        movement_id = f"auto_{attendance_id}"

        def _movement(previous: int, new: int) -> Dict[str, Any]:
            return StockMovement(
                tenant_id=tenant_id,
                item_id=item_id,
                type=MovementType.AUTO_DEDUCTION,
                quantity=new - previous,
                previous_stock=previous,
                new_stock=new,
                user_id=actor.uid,
                user_name=actor.name,
                reason=f"Baixa automática do atendimento {attendance_id}",
                related_attendance_id=attendance_id,
                timestamp=datetime.now(timezone.utc),
            ).model_dump(exclude={'id'})

        success, result, error = await self.db.decrement_floored(
            COLLECTIONS['inventory'],
            item_id,
            'current_stock',
            amount=1,
            match={'tenant_id': tenant_id},
            extra_updates={'updated_at': datetime.now(timezone.utc)},
            ledger=(COLLECTIONS['stock_movements'], movement_id, _movement),
        )

        if not success:
            return False, None, error
        if result is None:
            logger.info(f"Inventory item {item_id} not found; skipping deduction for attendance {attendance_id}")
            return True, "not_found", None
        if not result['applied']:
            return True, "already_applied", None

        logger.info(
            f"Deducted 1 unit of {item_id} for attendance {attendance_id} "
            f"({result['previous']} -> {result['new']})"
        )
        return True, "deducted", None

    async def list_movements(self, tenant_id: str, item_id: Optional[str] = None) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        filters = [('tenant_id', '==', tenant_id)]
        if item_id:
            filters.append(('item_id', '==', item_id))
        return await self.db.query_documents(
            COLLECTIONS['stock_movements'],
            filters,
            order_by=('timestamp', 'desc')
        )

    async def _log_movement(self, tenant_id: str, item_id: str, movement_type: MovementType,
                            quantity: int, previous_stock: int, new_stock: int, actor: Actor,
                            reason: Optional[str] = None) -> None:
        movement = StockMovement(
            tenant_id=tenant_id,
            item_id=item_id,
            type=movement_type,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            user_id=actor.uid,
            user_name=actor.name,
            reason=reason,
            timestamp=datetime.now(timezone.utc),
        )
        success, _, error = await self.db.create_document(
            COLLECTIONS['stock_movements'],
            movement.model_dump(exclude={'id'}),
            uuid.uuid4().hex,
            validate=False
        )
        if not success:
            # The stock change itself already landed; the ledger entry is informational
            logger.warning(f"Failed to log stock movement for {item_id}: {error}")


inventory_service = InventoryService()
