from datetime import datetime, timezone

import pytest

from iblind.core.exceptions import NotFoundError, PersistenceError, PreconditionViolation
from iblind.services.audit_service import DELETION_ACTION, AuditService

pytestmark = pytest.mark.asyncio


def seed_attendance(fake_db, attendance_id="att_1", tenant_id="t1", **extra):
    fake_db.storage.setdefault("attendances", {})[attendance_id] = {
        "tenant_id": tenant_id,
        "warranty_id": "IB-2024-0007",
        "client_name": "Maria",
        "total_value": 300.0,
        "date": datetime(2024, 3, 1, tzinfo=timezone.utc),
        "is_deleted": False,
        **extra,
    }


async def test_deletion_writes_log_and_flag_together(fake_db, specialist):
    seed_attendance(fake_db)
    service = AuditService(db=fake_db)

    log = await service.request_deletion("att_1", "  Cliente desistiu  ", specialist)

    stored = fake_db.storage["attendances"]["att_1"]
    assert stored["is_deleted"] is True
    assert stored["deleted_by"] == "spec_1"
    assert stored["deleted_at"] is not None

    logs = fake_db.storage["audit_logs"]
    assert list(logs) == [log.id]
    entry = logs[log.id]
    assert entry["action"] == DELETION_ACTION
    assert entry["target_id"] == "att_1"
    assert "att_1" in entry["details"]
    assert "Cliente desistiu" in entry["details"]
    assert entry["user_name"] == "Bruno"
    assert ("batch_write", 2) in fake_db.calls


@pytest.mark.parametrize("reason", ["", "abcd", "   ab   ", None])
async def test_short_reason_is_rejected_before_any_write(fake_db, specialist, reason):
    seed_attendance(fake_db)
    service = AuditService(db=fake_db)

    with pytest.raises(PreconditionViolation):
        await service.request_deletion("att_1", reason, specialist)

    assert fake_db.storage["attendances"]["att_1"]["is_deleted"] is False
    assert "audit_logs" not in fake_db.storage
    assert fake_db.calls == []


async def test_failed_batch_leaves_record_untouched(fake_db, specialist):
    seed_attendance(fake_db)
    service = AuditService(db=fake_db)
    fake_db.fail("batch_write")

    with pytest.raises(PersistenceError):
        await service.request_deletion("att_1", "Lançamento duplicado", specialist)

    assert fake_db.storage["attendances"]["att_1"]["is_deleted"] is False
    assert "audit_logs" not in fake_db.storage


async def test_other_tenant_record_is_not_found(fake_db, specialist):
    seed_attendance(fake_db, tenant_id="t2")
    service = AuditService(db=fake_db)

    with pytest.raises(NotFoundError):
        await service.request_deletion("att_1", "Lançamento duplicado", specialist)
    with pytest.raises(NotFoundError):
        await service.request_deletion("missing", "Lançamento duplicado", specialist)


async def test_already_deleted_is_refused(fake_db, specialist):
    seed_attendance(fake_db, is_deleted=True)
    service = AuditService(db=fake_db)

    with pytest.raises(PreconditionViolation):
        await service.request_deletion("att_1", "Lançamento duplicado", specialist)


async def test_list_audit_logs_by_target(fake_db, specialist):
    seed_attendance(fake_db, "att_1")
    seed_attendance(fake_db, "att_2")
    service = AuditService(db=fake_db)
    await service.request_deletion("att_1", "Teste de sistema", specialist)
    await service.request_deletion("att_2", "Valor incorreto", specialist)

    assert len(await service.list_audit_logs("t1")) == 2
    only_first = await service.list_audit_logs("t1", target_id="att_1")
    assert [log.target_id for log in only_first] == ["att_1"]
    assert await service.list_audit_logs("t2") == []
