from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging

from firebase_admin import firestore
from google.cloud.firestore_v1 import FieldFilter, Query

from ..core.firebase_init import initialize_firebase, is_firebase_available
from .collections import COLLECTION_SCHEMAS

logger = logging.getLogger(__name__)

# (field, operator, value), e.g. ("tenant_id", "==", "t-1")
Filter = Tuple[str, str, Any]
# (operation, collection, document_id, data); operation is create|set|update|delete
BatchOperation = Tuple[str, str, str, Optional[Dict[str, Any]]]
# (collection, document_id, factory(previous, new) -> document)
LedgerEntry = Tuple[str, str, Callable[[int, int], Dict[str, Any]]]


class DatabaseService:
    """Async facade over Cloud Firestore.

    Every method returns a tuple whose first element is a success flag and
    whose last element is an error message; nothing here raises on store
    failures. A missing document is not an error: ``get_document`` returns
    ``(True, None, None)`` for it.
    """

    def __init__(self):
        self._client = None

    def _raw_firestore(self):
        if self._client is None:
            if not is_firebase_available() and not initialize_firebase():
                raise RuntimeError("Firebase is not available")
            self._client = firestore.client()
        return self._client

    def _validate(self, collection_name: str, data: Dict[str, Any]) -> Optional[str]:
        schema = COLLECTION_SCHEMAS.get(collection_name)
        if not schema:
            return None
        missing = [f for f in schema['required'] if data.get(f) is None]
        if missing:
            return f"Missing required fields for {collection_name}: {', '.join(missing)}"
        return None

    @staticmethod
    def _to_dict(snapshot) -> Dict[str, Any]:
        data = snapshot.to_dict() or {}
        data.setdefault('id', snapshot.id)
        data['_doc_id'] = snapshot.id
        return data

    # ═══════════════════════════════════════════════════════════════════════════
    # SINGLE DOCUMENT OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_document(self, collection_name: str, data: Dict[str, Any],
                              document_id: Optional[str] = None,
                              validate: bool = True) -> Tuple[bool, Optional[str], Optional[str]]:
        """Create a new document. Fails if ``document_id`` already exists."""
        try:
            if validate:
                validation_error = self._validate(collection_name, data)
                if validation_error:
                    return False, None, validation_error

            collection = self._raw_firestore().collection(collection_name)
            doc_ref = collection.document(document_id) if document_id else collection.document()
            doc_ref.create(data)
            return True, doc_ref.id, None

        except Exception as e:
            error_msg = f"Error creating document in {collection_name}: {str(e)}"
            logger.error(error_msg)
            return False, None, error_msg

    async def get_document(self, collection_name: str, document_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        try:
            snapshot = self._raw_firestore().collection(collection_name).document(document_id).get()
            if not snapshot.exists:
                return True, None, None
            return True, self._to_dict(snapshot), None

        except Exception as e:
            error_msg = f"Error getting document {document_id} from {collection_name}: {str(e)}"
            logger.error(error_msg)
            return False, None, error_msg

    async def set_document(self, collection_name: str, document_id: str, data: Dict[str, Any],
                           merge: bool = True) -> Tuple[bool, Optional[str]]:
        try:
            self._raw_firestore().collection(collection_name).document(document_id).set(data, merge=merge)
            return True, None

        except Exception as e:
            error_msg = f"Error setting document {document_id} in {collection_name}: {str(e)}"
            logger.error(error_msg)
            return False, error_msg

    async def update_document(self, collection_name: str, document_id: str, data: Dict[str, Any],
                              validate: bool = False) -> Tuple[bool, Optional[str]]:
        """Partial update of an existing document."""
        try:
            self._raw_firestore().collection(collection_name).document(document_id).update(data)
            return True, None

        except Exception as e:
            error_msg = f"Error updating document {document_id} in {collection_name}: {str(e)}"
            logger.error(error_msg)
            return False, error_msg

    async def delete_document(self, collection_name: str, document_id: str) -> Tuple[bool, Optional[str]]:
        try:
            self._raw_firestore().collection(collection_name).document(document_id).delete()
            return True, None

        except Exception as e:
            error_msg = f"Error deleting document {document_id} from {collection_name}: {str(e)}"
            logger.error(error_msg)
            return False, error_msg

    # ═══════════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════════

    async def query_documents(self, collection_name: str, filters: Optional[Sequence[Filter]] = None,
                              limit: Optional[int] = None,
                              order_by: Optional[Tuple[str, str]] = None) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        """Query a collection with equality/range filters.

        ``order_by`` is ``(field, "asc"|"desc")``.
        """
        try:
            query = self._raw_firestore().collection(collection_name)
            for field, op, value in filters or []:
                query = query.where(filter=FieldFilter(field, op, value))

            if order_by:
                field, direction = order_by
                query = query.order_by(
                    field,
                    direction=Query.DESCENDING if direction == "desc" else Query.ASCENDING
                )

            if limit:
                query = query.limit(limit)

            return True, [self._to_dict(doc) for doc in query.stream()], None

        except Exception as e:
            error_msg = f"Error querying {collection_name}: {str(e)}"
            logger.error(error_msg)
            return False, [], error_msg

    # ═══════════════════════════════════════════════════════════════════════════
    # ATOMIC OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def batch_write(self, operations: Sequence[BatchOperation]) -> Tuple[bool, Optional[str]]:
        """Commit several writes atomically: all of them land or none does."""
        try:
            raw = self._raw_firestore()
            batch = raw.batch()
            for operation, collection_name, document_id, data in operations:
                ref = raw.collection(collection_name).document(document_id)
                if operation == "create":
                    batch.create(ref, data)
                elif operation == "set":
                    batch.set(ref, data)
                elif operation == "update":
                    batch.update(ref, data)
                elif operation == "delete":
                    batch.delete(ref)
                else:
                    return False, f"Unknown batch operation: {operation}"
            batch.commit()
            return True, None

        except Exception as e:
            error_msg = f"Error committing batch of {len(operations)} writes: {str(e)}"
            logger.error(error_msg)
            return False, error_msg

    async def decrement_floored(self, collection_name: str, document_id: str, field: str,
                                amount: int = 1,
                                match: Optional[Dict[str, Any]] = None,
                                extra_updates: Optional[Dict[str, Any]] = None,
                                ledger: Optional[LedgerEntry] = None) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        """Decrement an integer field by ``amount`` inside a transaction, never below 0.

        ``match`` must hold on the stored document, otherwise it is treated as
        missing. When ``ledger`` is given, its document is written in the same
        transaction and its existence makes the call a no-op, so retries apply
        the decrement at most once.

        Returns ``(True, None, None)`` when the document is missing, otherwise
        ``(True, {"previous", "new", "applied"}, None)``.
        """
        try:
            raw = self._raw_firestore()
            doc_ref = raw.collection(collection_name).document(document_id)
            ledger_ref = raw.collection(ledger[0]).document(ledger[1]) if ledger else None

            @firestore.transactional
            def _txn(transaction):
                snap = doc_ref.get(transaction=transaction)
                if not snap.exists:
                    return None
                data = snap.to_dict() or {}
                for key, value in (match or {}).items():
                    if data.get(key) != value:
                        return None

                previous = int(data.get(field) or 0)
                if ledger_ref is not None and ledger_ref.get(transaction=transaction).exists:
                    return {"previous": previous, "new": previous, "applied": False}

                new_value = max(0, previous - amount)
                transaction.update(doc_ref, {field: new_value, **(extra_updates or {})})
                if ledger_ref is not None:
                    transaction.set(ledger_ref, ledger[2](previous, new_value))
                return {"previous": previous, "new": new_value, "applied": True}

            return True, _txn(raw.transaction()), None

        except Exception as e:
            error_msg = f"Error decrementing {field} on {collection_name}/{document_id}: {str(e)}"
            logger.error(error_msg)
            return False, None, error_msg

    async def increment_counter(self, collection_name: str, document_id: str,
                                seed: Optional[Dict[str, Any]] = None,
                                field: str = "counter") -> Tuple[bool, Optional[int], Optional[str]]:
        """Atomically increment a counter document, creating it at 1 if absent."""
        try:
            raw = self._raw_firestore()
            doc_ref = raw.collection(collection_name).document(document_id)

            @firestore.transactional
            def _txn(transaction):
                snap = doc_ref.get(transaction=transaction)
                if snap.exists:
                    next_value = int((snap.to_dict() or {}).get(field) or 0) + 1
                    transaction.update(doc_ref, {field: next_value, "last_updated": firestore.SERVER_TIMESTAMP})
                else:
                    next_value = 1
                    transaction.set(doc_ref, {**(seed or {}), field: next_value, "last_updated": firestore.SERVER_TIMESTAMP})
                return next_value

            return True, _txn(raw.transaction()), None

        except Exception as e:
            error_msg = f"Error incrementing counter {collection_name}/{document_id}: {str(e)}"
            logger.error(error_msg)
            return False, None, error_msg


database_service = DatabaseService()
