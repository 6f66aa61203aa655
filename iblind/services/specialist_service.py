from typing import Dict, Any, List
from datetime import datetime, timezone
import logging
import uuid

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..core.exceptions import NotFoundError, PersistenceError, PreconditionViolation
from ..models.user import Actor, SpecialistCreate, User, UserRole

logger = logging.getLogger(__name__)


class SpecialistService:
    """Roster of specialists that can be assigned to attendances"""

    def __init__(self, db=None):
        self.db = db or database_service

    def _require_admin(self, actor: Actor):
        if not actor.is_admin:
            raise PreconditionViolation("Admin access required")

    async def list_specialists(self, tenant_id: str) -> List[Dict[str, Any]]:
        success, users, error = await self.db.query_documents(
            COLLECTIONS['users'],
            [('tenant_id', '==', tenant_id), ('role', '==', UserRole.SPECIALIST.value)]
        )
        if not success:
            raise PersistenceError(f"Failed to load specialists: {error}")
        return sorted(users, key=lambda u: (u.get('name') or '').lower())

    async def get_roster(self, tenant_id: str) -> List[Dict[str, Any]]:
        """Id/name pairs offered by the intake wizard"""
        return [{'id': u['id'], 'name': u.get('name')} for u in await self.list_specialists(tenant_id)]

    async def add_specialist(self, payload: SpecialistCreate, actor: Actor) -> User:
        self._require_admin(actor)
        email = payload.email.lower()

        success, existing, error = await self.db.query_documents(
            COLLECTIONS['users'],
            [('email', '==', email)],
            limit=1
        )
        if not success:
            raise PersistenceError(f"Failed to check email: {error}")
        if existing:
            raise PreconditionViolation(f"Email {email} is already registered")

        user = User(
            id=uuid.uuid4().hex,
            tenant_id=actor.tenant_id,
            email=email,
            name=payload.name,
            role=UserRole.SPECIALIST,
            created_at=datetime.now(timezone.utc),
        )
        success, _, error = await self.db.create_document(
            COLLECTIONS['users'],
            user.model_dump(exclude={'id'}),
            user.id,
            validate=True
        )
        if not success:
            raise PersistenceError(f"Failed to add specialist: {error}")

        logger.info(f"Specialist {user.email} added by {actor.uid}")
        return user

    async def delete_specialist(self, specialist_id: str, actor: Actor) -> int:
        """Hard delete; only specialist accounts can be removed this way.

        Inventory items assigned to the specialist go back to the central
        pool in the same batch. Returns how many items were released.
        """
        self._require_admin(actor)

        success, user, error = await self.db.get_document(COLLECTIONS['users'], specialist_id)
        if not success:
            raise PersistenceError(f"Failed to load user {specialist_id}: {error}")
        if not user or user.get('tenant_id') != actor.tenant_id:
            raise NotFoundError(f"Specialist {specialist_id} not found")
        if user.get('role') != UserRole.SPECIALIST.value:
            raise PreconditionViolation("Only specialist accounts can be deleted")

        success, items, error = await self.db.query_documents(
            COLLECTIONS['inventory'],
            [('tenant_id', '==', actor.tenant_id), ('assigned_specialist_id', '==', specialist_id)]
        )
        if not success:
            raise PersistenceError(f"Failed to load items of specialist {specialist_id}: {error}")

        now = datetime.now(timezone.utc)
        operations = [('delete', COLLECTIONS['users'], specialist_id, None)]
        for item in items:
            operations.append((
                'update', COLLECTIONS['inventory'], item['_doc_id'],
                {'assigned_specialist_id': None, 'assigned_specialist_name': None, 'updated_at': now}
            ))

        success, error = await self.db.batch_write(operations)
        if not success:
            raise PersistenceError(f"Failed to delete specialist: {error}")
        logger.info(f"Specialist {specialist_id} deleted by {actor.uid}; {len(items)} items returned to pool")
        return len(items)


specialist_service = SpecialistService()
