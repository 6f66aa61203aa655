from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..core.exceptions import PersistenceError
from ..models.database_models import TenantConfig
from datetime import datetime, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class WarrantyIdService:
    def __init__(self, db=None):
        self.db = db or database_service

    @staticmethod
    def counter_id(tenant_id: str, year: int) -> str:
        return f"warranty_counter_{tenant_id}_{year}"

    async def generate_warranty_id(self, tenant: TenantConfig, year: Optional[int] = None) -> str:
        """
        Generate the next warranty code for a tenant in format: PREFIX-YYYY-NNNN
        Example: IB-2025-0001, IB-2025-0002, etc.

        The per-tenant, per-year counter is incremented inside a Firestore
        transaction, so concurrent finalizations never share a number.
        """
        if year is None:
            year = datetime.now(timezone.utc).year

        success, next_number, error = await self.db.increment_counter(
            COLLECTIONS['counters'],
            self.counter_id(tenant.tenant_id, year),
            seed={"tenant_id": tenant.tenant_id, "year": year},
        )

        if not success or not next_number:
            logger.error(f"Failed to increment warranty counter: {error}")
            raise PersistenceError(f"Failed to generate warranty code: {error}")

        # Generate formatted ID: PREFIX-YYYY-NNNN (4 digits with leading zeros)
        formatted_id = f"{tenant.warranty_prefix}-{year}-{next_number:04d}"
        logger.info(f"Generated warranty code: {formatted_id}")

        return formatted_id

    async def get_current_counter(self, tenant_id: str, year: Optional[int] = None) -> int:
        """Get the current counter value for a tenant and year"""
        if year is None:
            year = datetime.now(timezone.utc).year

        success, counter_data, error = await self.db.get_document(
            COLLECTIONS['counters'],
            self.counter_id(tenant_id, year)
        )

        if not success or not counter_data:
            return 0

        return counter_data.get("counter", 0)


warranty_id_service = WarrantyIdService()
