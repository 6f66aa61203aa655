from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime, timedelta, timezone
import logging
import uuid

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..core.config import settings
from ..core.exceptions import (
    NotFoundError, PartialCompletionError, PersistenceError, PreconditionViolation,
    SubmissionInProgressError
)
from ..models.database_models import Attendance, PendingEffect, TenantConfig
from ..models.intake_models import IntakeDraft
from ..models.user import Actor
from .intake_wizard import validate_draft
from .inventory_service import InventoryService
from .warranty_id_service import WarrantyIdService

logger = logging.getLogger(__name__)

STOCK_DEDUCTION = "stock_deduction"


def compute_warranty_until(start: datetime, warranty_days: int) -> datetime:
    """Creation instant plus ``warranty_days`` calendar days (not business days).

    2024-01-10 with 365 days -> 2025-01-09 (2024 is a leap year).
    """
    return start + timedelta(days=warranty_days)


class AttendanceService:
    """Completion handler and history access for attendances"""

    def __init__(self, db=None, inventory=None, warranty_ids=None):
        self.db = db or database_service
        self.inventory = inventory or InventoryService(self.db)
        self.warranty_ids = warranty_ids or WarrantyIdService(self.db)

    # ═══════════════════════════════════════════════════════════════════════════
    # FINALIZE
    # ═══════════════════════════════════════════════════════════════════════════

    async def finalize(self, draft: IntakeDraft, tenant: TenantConfig, actor: Actor,
                       now: Optional[datetime] = None,
                       attendance_id: Optional[str] = None) -> Attendance:
        """Turn a validated draft into a stored attendance and deduct its stock item.

        The attendance is created before the deduction is attempted. A failed
        deduction does not undo the attendance: it is queued as a pending
        effect and its id listed on ``attendance.pending_effects``.

        ``attendance_id`` is a client-chosen submission key. A second call with
        the same key raises SubmissionInProgressError without consuming a
        warranty number or touching stock.

        Raises PersistenceError when the attendance itself cannot be stored;
        the caller's draft is untouched in that case.
        """
        if tenant.tenant_id != actor.tenant_id:
            raise PreconditionViolation("Actor does not belong to this tenant")

        validate_draft(draft)

        if attendance_id:
            await self._ensure_not_submitted(attendance_id)

        now = now or datetime.now(timezone.utc)
        warranty_id = await self.warranty_ids.generate_warranty_id(tenant, now.year)

        attendance = Attendance(
            id=attendance_id or uuid.uuid4().hex,
            tenant_id=tenant.tenant_id,
            warranty_id=warranty_id,
            date=now,
            warranty_until=compute_warranty_until(now, tenant.warranty_default_days),
            technician_id=actor.uid,
            technician_name=actor.name,
            specialist_id=draft.specialist_id or actor.uid,
            specialist_name=draft.specialist_name or (actor.name if not draft.specialist_id else None),
            client_name=draft.client_name.strip(),
            client_phone=draft.client_phone,
            device_model=draft.device_model.strip(),
            device_imei=draft.device_imei,
            state=draft.state,
            coverage=draft.coverage,
            used_item_id=draft.used_item_id,
            value_blindagem=draft.value_blindagem,
            value_pelicula=draft.value_pelicula,
            value_others=draft.value_others,
            total_value=draft.total_value,
            payment_method=draft.payment_method,
            photos=list(draft.photos),
            client_signature=draft.client_signature,
        )

        success, _, error = await self.db.create_document(
            COLLECTIONS['attendances'],
            attendance.to_document(),
            attendance.id,
            validate=True
        )
        if not success:
            if attendance_id:
                # a concurrent submission with the same key won the create
                await self._ensure_not_submitted(attendance_id)
            logger.error(f"Failed to create attendance for {attendance.client_name}: {error}")
            raise PersistenceError(f"Failed to save attendance: {error}")

        logger.info(f"Created attendance {attendance.id} ({attendance.warranty_id}) total {attendance.total_value:.2f}")

        if attendance.used_item_id:
            try:
                await self._deduct_stock(attendance, actor)
            except PartialCompletionError as e:
                logger.warning(f"[Finalize] {e.message}")
                effect_id = await self._queue_pending_effect(attendance, actor, e.message)
                if effect_id:
                    attendance.pending_effects.append(effect_id)

        return attendance

    async def _ensure_not_submitted(self, attendance_id: str) -> None:
        success, existing, error = await self.db.get_document(COLLECTIONS['attendances'], attendance_id)
        if not success:
            raise PersistenceError(f"Failed to check submission {attendance_id}: {error}")
        if existing:
            logger.warning(f"Duplicate submission {attendance_id} rejected")
            raise SubmissionInProgressError(f"Attendance {attendance_id} was already submitted")

    async def _deduct_stock(self, attendance: Attendance, actor: Actor) -> str:
        success, outcome, error = await self.inventory.consume_for_attendance(
            attendance.tenant_id, attendance.used_item_id, attendance.id, actor
        )
        if not success:
            raise PartialCompletionError(
                f"Attendance {attendance.id} saved but stock deduction of "
                f"{attendance.used_item_id} failed: {error}",
                record_id=attendance.id,
                effect_type=STOCK_DEDUCTION,
            )
        return outcome

    async def _queue_pending_effect(self, attendance: Attendance, actor: Actor, error: str) -> Optional[str]:
        now = datetime.now(timezone.utc)
        effect = PendingEffect(
            id=f"{STOCK_DEDUCTION}_{attendance.id}",
            tenant_id=attendance.tenant_id,
            effect_type=STOCK_DEDUCTION,
            attendance_id=attendance.id,
            item_id=attendance.used_item_id,
            actor_id=actor.uid,
            actor_name=actor.name,
            attempts=1,
            last_error=error,
            created_at=now,
            updated_at=now,
        )
        success, _, queue_error = await self.db.create_document(
            COLLECTIONS['pending_effects'],
            effect.model_dump(exclude={'id'}),
            effect.id,
            validate=True
        )
        if not success:
            logger.error(f"Could not queue pending stock deduction for attendance {attendance.id}: {queue_error}")
            return None
        return effect.id

    async def retry_pending_effects(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        """Re-run queued stock deductions (at-least-once; deductions are keyed on the attendance)."""
        filters = [('status', '==', 'pending')]
        if tenant_id:
            filters.append(('tenant_id', '==', tenant_id))

        success, effects, error = await self.db.query_documents(COLLECTIONS['pending_effects'], filters)
        if not success:
            raise PersistenceError(f"Failed to load pending effects: {error}")

        summary = {"retried": 0, "done": 0, "failed": 0}
        for effect in effects:
            summary["retried"] += 1
            actor = Actor(
                uid=effect.get('actor_id') or 'system',
                name=effect.get('actor_name') or 'system',
                tenant_id=effect['tenant_id'],
            )
            ok, outcome, retry_error = await self.inventory.consume_for_attendance(
                effect['tenant_id'], effect['item_id'], effect['attendance_id'], actor
            )
            attempts = int(effect.get('attempts') or 0) + 1
            update = {'attempts': attempts, 'updated_at': datetime.now(timezone.utc)}
            if ok:
                update['status'] = 'done'
                update['last_error'] = None
                summary["done"] += 1
                logger.info(f"Pending stock deduction for attendance {effect['attendance_id']}: {outcome}")
            else:
                update['last_error'] = retry_error
                if attempts >= settings.EFFECT_MAX_ATTEMPTS:
                    update['status'] = 'failed'
                    logger.error(f"Giving up stock deduction for attendance {effect['attendance_id']} after {attempts} attempts")
                summary["failed"] += 1

            await self.db.update_document(COLLECTIONS['pending_effects'], effect['_doc_id'], update)

        return summary

    async def list_pending_effects(self, tenant_id: str) -> List[Dict[str, Any]]:
        success, effects, error = await self.db.query_documents(
            COLLECTIONS['pending_effects'],
            [('tenant_id', '==', tenant_id), ('status', '==', 'pending')]
        )
        if not success:
            raise PersistenceError(f"Failed to load pending effects: {error}")
        return effects

    # ═══════════════════════════════════════════════════════════════════════════
    # HISTORY
    # ═══════════════════════════════════════════════════════════════════════════

    async def list_attendances(self, tenant_id: str, include_deleted: bool = False,
                               specialist_id: Optional[str] = None) -> List[Attendance]:
        """Attendances of a tenant, most recent first"""
        filters = [('tenant_id', '==', tenant_id)]
        if specialist_id:
            filters.append(('specialist_id', '==', specialist_id))

        success, docs, error = await self.db.query_documents(
            COLLECTIONS['attendances'],
            filters,
            order_by=('date', 'desc')
        )
        if not success:
            raise PersistenceError(f"Failed to load attendances: {error}")

        attendances = [Attendance.model_validate(doc) for doc in docs]
        if not include_deleted:
            attendances = [a for a in attendances if not a.is_deleted]
        return attendances

    async def search_attendances(self, tenant_id: str, term: str) -> List[Attendance]:
        """Case-insensitive match on client, device, IMEI or warranty code; deleted records excluded"""
        term = (term or "").strip().lower()
        attendances = await self.list_attendances(tenant_id)
        if not term:
            return attendances
        return [
            a for a in attendances
            if term in a.client_name.lower()
            or term in a.device_model.lower()
            or term in (a.device_imei or "").lower()
            or term in a.warranty_id.lower()
        ]

    async def get_attendance(self, tenant_id: str, attendance_id: str) -> Attendance:
        success, doc, error = await self.db.get_document(COLLECTIONS['attendances'], attendance_id)
        if not success:
            raise PersistenceError(f"Failed to load attendance {attendance_id}: {error}")
        if not doc or doc.get('tenant_id') != tenant_id:
            raise NotFoundError(f"Attendance {attendance_id} not found")
        return Attendance.model_validate(doc)


attendance_service = AttendanceService()
