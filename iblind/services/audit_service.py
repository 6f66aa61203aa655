"""
Deletion audit service.
Attendances are only soft-deleted, always with a justification recorded in an
append-only audit log.
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging
import uuid

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..core.config import settings
from ..core.exceptions import NotFoundError, PersistenceError, PreconditionViolation
from ..models.database_models import AuditLog
from ..models.user import Actor

logger = logging.getLogger(__name__)

DELETION_ACTION = "EXCLUSÃO"


class AuditService:
    def __init__(self, db=None):
        self.db = db or database_service

    async def request_deletion(self, attendance_id: str, reason: str, actor: Actor) -> AuditLog:
        """
        Soft-delete an attendance with a mandatory reason.

        The audit entry and the ``is_deleted`` flag are committed in one batch:
        either both are stored or neither is.

        Raises:
            PreconditionViolation: reason too short, or attendance already deleted
            NotFoundError: attendance missing or owned by another tenant
            PersistenceError: the store could not be read or the batch failed
        """
        reason = (reason or "").strip()
        if len(reason) < settings.MIN_DELETION_REASON:
            raise PreconditionViolation(
                f"Deletion reason must have at least {settings.MIN_DELETION_REASON} characters"
            )

        success, attendance, error = await self.db.get_document(COLLECTIONS['attendances'], attendance_id)
        if not success:
            raise PersistenceError(f"Failed to load attendance {attendance_id}: {error}")
        if not attendance or attendance.get('tenant_id') != actor.tenant_id:
            raise NotFoundError(f"Attendance {attendance_id} not found")
        if attendance.get('is_deleted'):
            raise PreconditionViolation(f"Attendance {attendance_id} is already deleted")

        now = datetime.now(timezone.utc)
        audit_log = AuditLog(
            id=uuid.uuid4().hex,
            tenant_id=actor.tenant_id,
            user_id=actor.uid,
            user_name=actor.name,
            action=DELETION_ACTION,
            details=f"Atendimento {attendance_id} ({attendance.get('warranty_id')}) excluído. Motivo: {reason}",
            timestamp=now,
            target_id=attendance_id,
        )

        success, error = await self.db.batch_write([
            ("create", COLLECTIONS['audit_logs'], audit_log.id, audit_log.model_dump(exclude={'id'})),
            ("update", COLLECTIONS['attendances'], attendance.get('_doc_id', attendance_id), {
                'is_deleted': True,
                'deleted_at': now,
                'deleted_by': actor.uid,
            }),
        ])
        if not success:
            logger.error(f"Deletion of attendance {attendance_id} not applied: {error}")
            raise PersistenceError(f"Failed to delete attendance: {error}")

        logger.info(f"Attendance {attendance_id} soft-deleted by {actor.uid}")
        return audit_log

    async def list_audit_logs(self, tenant_id: str, target_id: Optional[str] = None,
                              limit: int = 100) -> List[AuditLog]:
        """Audit entries of a tenant, newest first"""
        filters = [('tenant_id', '==', tenant_id)]
        if target_id:
            filters.append(('target_id', '==', target_id))

        success, docs, error = await self.db.query_documents(
            COLLECTIONS['audit_logs'],
            filters,
            limit=limit,
            order_by=('timestamp', 'desc')
        )
        if not success:
            raise PersistenceError(f"Failed to load audit logs: {error}")
        return [AuditLog.model_validate(doc) for doc in docs]


audit_service = AuditService()
