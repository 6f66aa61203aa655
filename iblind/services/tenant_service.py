from typing import Dict, Any, Optional
from datetime import datetime, timezone
import logging

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..core.config import settings
from ..core.exceptions import PersistenceError, PreconditionViolation
from ..models.database_models import TenantConfig, TenantConfigUpdate
from ..models.user import Actor
from .attendance_service import AttendanceService
from .inventory_service import InventoryService

logger = logging.getLogger(__name__)


def default_tenant_config(tenant_id: str) -> TenantConfig:
    return TenantConfig(
        tenant_id=tenant_id,
        company_name=settings.COMPANY_NAME,
        warranty_default_days=settings.WARRANTY_DEFAULT_DAYS,
        warranty_prefix=settings.WARRANTY_PREFIX,
        allow_custom_pricing=True,
        primary_color=settings.PRIMARY_COLOR,
    )


class TenantService:
    def __init__(self, db=None, attendances: Optional[AttendanceService] = None,
                 inventory: Optional[InventoryService] = None):
        self.db = db or database_service
        self.attendances = attendances or AttendanceService(self.db)
        self.inventory = inventory or InventoryService(self.db)

    async def get_tenant_config(self, tenant_id: str) -> TenantConfig:
        """Stored settings, or the configured defaults for a tenant that never saved any"""
        success, doc, error = await self.db.get_document(COLLECTIONS['tenants'], tenant_id)
        if not success:
            raise PersistenceError(f"Failed to load tenant settings: {error}")
        if not doc:
            return default_tenant_config(tenant_id)
        return TenantConfig.model_validate({**default_tenant_config(tenant_id).model_dump(), **doc, 'tenant_id': tenant_id})

    async def update_tenant_config(self, tenant_id: str, update: TenantConfigUpdate, actor: Actor) -> TenantConfig:
        if not actor.is_admin:
            raise PreconditionViolation("Admin access required")

        current = await self.get_tenant_config(tenant_id)
        merged = TenantConfig.model_validate({**current.model_dump(), **update.model_dump(exclude_unset=True)})

        success, error = await self.db.set_document(COLLECTIONS['tenants'], tenant_id, merged.model_dump())
        if not success:
            raise PersistenceError(f"Failed to save tenant settings: {error}")

        logger.info(f"Tenant {tenant_id} settings updated by {actor.uid}")
        return merged

    async def export_backup(self, tenant_id: str) -> Dict[str, Any]:
        """JSON-ready snapshot of history (deleted records included), inventory and settings"""
        history = await self.attendances.list_attendances(tenant_id, include_deleted=True)
        success, items, error = await self.inventory.list_items(tenant_id)
        if not success:
            raise PersistenceError(f"Failed to load inventory: {error}")
        tenant = await self.get_tenant_config(tenant_id)

        return {
            "history": [a.model_dump(mode="json") for a in history],
            "inventory": [{k: v for k, v in item.items() if k != '_doc_id'} for item in items],
            "tenant": tenant.model_dump(),
            "export_date": datetime.now(timezone.utc).isoformat(),
        }


tenant_service = TenantService()
