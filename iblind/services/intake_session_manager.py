from typing import Dict, Any, Optional
from datetime import datetime, timedelta, timezone
from uuid import uuid4
import asyncio
import logging

from ..core.exceptions import NotFoundError, PersistenceError
from ..models.database_models import Attendance
from ..models.intake_models import IntakeDraft
from ..models.user import Actor
from .attendance_service import AttendanceService, attendance_service as default_attendance_service
from .inventory_service import InventoryService, inventory_service as default_inventory_service
from .intake_wizard import IntakeWizard
from .specialist_service import SpecialistService, specialist_service as default_specialist_service
from .tenant_service import TenantService, tenant_service as default_tenant_service

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=12)


class IntakeSessionManager:
    """Hosts one intake wizard per session for the dashboard.

    Drafts live only in memory: a restart or an expired session loses them,
    the same as closing the wizard screen.
    """

    def __init__(self,
                 attendances: Optional[AttendanceService] = None,
                 specialists: Optional[SpecialistService] = None,
                 inventory: Optional[InventoryService] = None,
                 tenants: Optional[TenantService] = None):
        self.attendances = attendances or default_attendance_service
        self.specialists = specialists or default_specialist_service
        self.inventory = inventory or default_inventory_service
        self.tenants = tenants or default_tenant_service

        self.sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def start(self, actor: Actor) -> str:
        """startWizard: create a wizard bound to the actor and tenant"""
        roster = await self.specialists.get_roster(actor.tenant_id)
        success, items, error = await self.inventory.list_items(actor.tenant_id)
        if not success:
            raise PersistenceError(f"Failed to load inventory: {error}")

        session_id = uuid4().hex

        async def on_complete(draft: IntakeDraft) -> Attendance:
            tenant = await self.tenants.get_tenant_config(actor.tenant_id)
            return await self.attendances.finalize(draft, tenant, actor)

        def on_cancel():
            self.sessions.pop(session_id, None)
            logger.info(f"[Intake] Session {session_id} cancelled by {actor.uid}")

        wizard = IntakeWizard(
            on_complete=on_complete,
            on_cancel=on_cancel,
            roster=roster,
            inventory=[{'id': i['id'], 'sku': i.get('sku')} for i in items],
        )

        async with self._lock:
            self._prune_expired()
            self.sessions[session_id] = {
                "wizard": wizard,
                "actor": actor,
                "created_at": datetime.now(timezone.utc),
            }

        logger.info(f"[Intake] Session {session_id} started by {actor.uid}")
        return session_id

    def get(self, session_id: str, actor: Actor) -> IntakeWizard:
        session = self.sessions.get(session_id)
        if not session or session["actor"].uid != actor.uid or session["actor"].tenant_id != actor.tenant_id:
            raise NotFoundError(f"Intake session {session_id} not found")
        return session["wizard"]

    async def advance(self, session_id: str, actor: Actor) -> Optional[Attendance]:
        """next(); on the last step this finalizes and closes the session"""
        wizard = self.get(session_id, actor)
        result = await wizard.next()
        if wizard.is_closed:
            async with self._lock:
                self.sessions.pop(session_id, None)
        return result

    def _prune_expired(self):
        cutoff = datetime.now(timezone.utc) - SESSION_TTL
        expired = [
            sid for sid, session in self.sessions.items()
            if session["created_at"] < cutoff and not session["wizard"].is_submitting
        ]
        for sid in expired:
            del self.sessions[sid]
        if expired:
            logger.info(f"[Intake] Pruned {len(expired)} expired sessions")


intake_session_manager = IntakeSessionManager()
