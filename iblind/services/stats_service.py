from typing import Any, Dict, Iterable, List, Optional, Union
from datetime import datetime, timedelta, timezone
import logging

from ..core.config import settings
from ..models.database_models import Attendance, InventoryItem
from .attendance_service import AttendanceService, attendance_service as default_attendance_service
from .inventory_service import InventoryService, inventory_service as default_inventory_service
from ..core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

AttendanceLike = Union[Attendance, Dict[str, Any]]
ItemLike = Union[InventoryItem, Dict[str, Any]]


def _get(record, field, default=None):
    if isinstance(record, dict):
        return record.get(field, default)
    return getattr(record, field, default)


def local_timezone() -> timezone:
    return timezone(timedelta(hours=settings.TZ_OFFSET))


def _local_date(value: datetime, tz: timezone):
    # Naive datetimes are stored in UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).date()


def is_critical(item: ItemLike) -> bool:
    return int(_get(item, 'current_stock', 0) or 0) <= int(_get(item, 'min_stock', 0) or 0)


def active_attendances(attendances: Iterable[AttendanceLike]) -> List[AttendanceLike]:
    return [a for a in attendances if not _get(a, 'is_deleted', False)]


def compute_dashboard_stats(attendances: Iterable[AttendanceLike],
                            inventory: Iterable[ItemLike],
                            now: Optional[datetime] = None,
                            tz: Optional[timezone] = None) -> Dict[str, Any]:
    """Dashboard metrics, always derived from the collections passed in.

    Soft-deleted attendances are left out of every figure. ``count_today``
    compares calendar dates in the local timezone, not a rolling 24h window.
    """
    tz = tz or local_timezone()
    now = now or datetime.now(tz)
    today = _local_date(now, tz)

    valid = active_attendances(attendances)
    revenue = round(sum(float(_get(a, 'total_value', 0) or 0) for a in valid), 2)
    count = len(valid)
    count_today = sum(
        1 for a in valid
        if _get(a, 'date') and _local_date(_get(a, 'date'), tz) == today
    )

    return {
        "revenue": revenue,
        "count": count,
        "avg_ticket": round(revenue / count, 2) if count > 0 else 0.0,
        "critical_stock_count": sum(1 for item in inventory if is_critical(item)),
        "count_today": count_today,
    }


def specialist_stats(attendances: Iterable[AttendanceLike], specialist_id: str) -> Dict[str, Any]:
    services = [a for a in active_attendances(attendances) if _get(a, 'specialist_id') == specialist_id]
    return {
        "count": len(services),
        "total": round(sum(float(_get(a, 'total_value', 0) or 0) for a in services), 2),
    }


class StatsService:
    """Loads the tenant collections and derives the dashboard on every call"""

    def __init__(self, attendances: Optional[AttendanceService] = None,
                 inventory: Optional[InventoryService] = None):
        self.attendances = attendances or default_attendance_service
        self.inventory = inventory or default_inventory_service

    async def get_dashboard_stats(self, tenant_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        history = await self.attendances.list_attendances(tenant_id)
        success, items, error = await self.inventory.list_items(tenant_id)
        if not success:
            raise PersistenceError(f"Failed to load inventory: {error}")

        stats = compute_dashboard_stats(history, items, now=now)
        stats["recent"] = [a.model_dump() for a in history[:5]]
        stats["critical_items"] = [item for item in items if is_critical(item)]
        return stats

    async def get_specialist_stats(self, tenant_id: str, specialist_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        history = await self.attendances.list_attendances(tenant_id)
        return {sid: specialist_stats(history, sid) for sid in specialist_ids}


stats_service = StatsService()
