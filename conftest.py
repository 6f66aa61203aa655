import copy

import pytest
from google.cloud.firestore_v1 import Increment

from iblind.models.database_models import TenantConfig
from iblind.models.user import Actor, UserRole


class FakeDB:
    """In-memory stand-in for DatabaseService, same tuple-returning contract.

    ``fail("update_document", "inventory")`` makes the next calls of that
    method on that collection fail until ``recover()``.
    """

    def __init__(self):
        self.storage = {}
        self.failures = {}
        self.calls = []

    # ----- failure injection -------------------------------------------------

    def fail(self, method, collection=None, error="store unavailable"):
        self.failures[(method, collection)] = error

    def recover(self):
        self.failures.clear()

    def _failure(self, method, collection=None):
        return self.failures.get((method, collection)) or self.failures.get((method, None))

    # ----- helpers -----------------------------------------------------------

    def _coll(self, collection):
        return self.storage.setdefault(collection, {})

    @staticmethod
    def _out(doc_id, data):
        doc = copy.deepcopy(data)
        doc.setdefault('id', doc_id)
        doc['_doc_id'] = doc_id
        return doc

    @staticmethod
    def _apply(current, data):
        for key, value in data.items():
            if isinstance(value, Increment):
                current[key] = (current.get(key) or 0) + value.value
            else:
                current[key] = copy.deepcopy(value)

    def docs(self, collection):
        return [self._out(doc_id, data) for doc_id, data in self._coll(collection).items()]

    # ----- DatabaseService API -----------------------------------------------

    async def create_document(self, collection, data, document_id=None, validate=True):
        self.calls.append(("create_document", collection))
        error = self._failure("create_document", collection)
        if error:
            return False, None, error
        coll = self._coll(collection)
        doc_id = document_id or f"doc_{len(coll) + 1}"
        if doc_id in coll:
            return False, None, f"Document {doc_id} already exists"
        coll[doc_id] = copy.deepcopy(data)
        return True, doc_id, None

    async def get_document(self, collection, document_id):
        error = self._failure("get_document", collection)
        if error:
            return False, None, error
        data = self._coll(collection).get(document_id)
        if data is None:
            return True, None, None
        return True, self._out(document_id, data), None

    async def set_document(self, collection, document_id, data, merge=True):
        error = self._failure("set_document", collection)
        if error:
            return False, error
        coll = self._coll(collection)
        if merge and document_id in coll:
            self._apply(coll[document_id], data)
        else:
            coll[document_id] = copy.deepcopy(data)
        return True, None

    async def update_document(self, collection, document_id, data, validate=False):
        error = self._failure("update_document", collection)
        if error:
            return False, error
        coll = self._coll(collection)
        if document_id not in coll:
            return False, "not found"
        self._apply(coll[document_id], data)
        return True, None

    async def delete_document(self, collection, document_id):
        error = self._failure("delete_document", collection)
        if error:
            return False, error
        self._coll(collection).pop(document_id, None)
        return True, None

    async def query_documents(self, collection, filters=None, limit=None, order_by=None):
        error = self._failure("query_documents", collection)
        if error:
            return False, [], error

        ops = {
            '==': lambda a, b: a == b,
            '!=': lambda a, b: a != b,
            '<': lambda a, b: a is not None and a < b,
            '<=': lambda a, b: a is not None and a <= b,
            '>': lambda a, b: a is not None and a > b,
            '>=': lambda a, b: a is not None and a >= b,
            'in': lambda a, b: a in b,
        }
        docs = self.docs(collection)
        for field, op, value in filters or []:
            docs = [d for d in docs if ops[op](d.get(field), value)]
        if order_by:
            field, direction = order_by
            docs.sort(key=lambda d: d.get(field), reverse=direction == "desc")
        if limit:
            docs = docs[:limit]
        return True, docs, None

    async def batch_write(self, operations):
        self.calls.append(("batch_write", len(operations)))
        error = self._failure("batch_write")
        if error:
            return False, error
        for operation, collection, document_id, _ in operations:
            exists = document_id in self._coll(collection)
            if operation == "create" and exists:
                return False, f"Document {document_id} already exists"
            if operation == "update" and not exists:
                return False, f"Document {document_id} not found"
        for operation, collection, document_id, data in operations:
            coll = self._coll(collection)
            if operation in ("create", "set"):
                coll[document_id] = copy.deepcopy(data)
            elif operation == "update":
                self._apply(coll[document_id], data)
            elif operation == "delete":
                coll.pop(document_id, None)
        return True, None

    async def decrement_floored(self, collection, document_id, field, amount=1,
                                match=None, extra_updates=None, ledger=None):
        error = self._failure("decrement_floored", collection)
        if error:
            return False, None, error
        doc = self._coll(collection).get(document_id)
        if doc is None or any(doc.get(k) != v for k, v in (match or {}).items()):
            return True, None, None
        previous = int(doc.get(field) or 0)
        if ledger and ledger[1] in self._coll(ledger[0]):
            return True, {"previous": previous, "new": previous, "applied": False}, None
        new_value = max(0, previous - amount)
        doc[field] = new_value
        doc.update(extra_updates or {})
        if ledger:
            self._coll(ledger[0])[ledger[1]] = ledger[2](previous, new_value)
        return True, {"previous": previous, "new": new_value, "applied": True}, None

    async def increment_counter(self, collection, document_id, seed=None, field="counter"):
        error = self._failure("increment_counter", collection)
        if error:
            return False, None, error
        coll = self._coll(collection)
        doc = coll.setdefault(document_id, dict(seed or {}))
        doc[field] = int(doc.get(field) or 0) + 1
        return True, doc[field], None


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def admin():
    return Actor(uid="admin_1", name="Carla", email="carla@iblind.com.br", role=UserRole.ADMIN, tenant_id="t1")


@pytest.fixture
def specialist():
    return Actor(uid="spec_1", name="Bruno", email="bruno@iblind.com.br", role=UserRole.SPECIALIST, tenant_id="t1")


@pytest.fixture
def tenant():
    return TenantConfig(tenant_id="t1", company_name="iBlind Centro", warranty_default_days=365, warranty_prefix="IB")
