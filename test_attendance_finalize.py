from datetime import date, datetime, timedelta, timezone

import pytest

from iblind.core.config import settings
from iblind.core.exceptions import (
    DraftValidationError, PersistenceError, PreconditionViolation, SubmissionInProgressError
)
from iblind.models.intake_models import IntakeDraft
from iblind.models.user import Actor
from iblind.services.attendance_service import AttendanceService, compute_warranty_until
from iblind.services.stats_service import is_critical
from iblind.services.warranty_id_service import WarrantyIdService

pytestmark = pytest.mark.asyncio

JAN_10 = datetime(2024, 1, 10, 14, 30, tzinfo=timezone.utc)


def make_draft(**overrides):
    data = {
        "client_name": "Maria Souza",
        "client_phone": "11 98888-7777",
        "device_model": "iPhone 14 Pro",
        "device_imei": "356938035643809",
        "value_blindagem": 150,
        "value_pelicula": 20,
        "value_others": 0,
        "client_signature": "data:image/png;base64,c2ln",
    }
    data.update(overrides)
    return IntakeDraft(**data)


def seed_item(fake_db, item_id="item_1", stock=1, min_stock=2, tenant_id="t1"):
    fake_db.storage.setdefault("inventory", {})[item_id] = {
        "tenant_id": tenant_id,
        "sku": "SKU-AB12",
        "brand": "Gorilla",
        "model": "iPhone 14 Pro",
        "current_stock": stock,
        "min_stock": min_stock,
    }


def stored_item(fake_db, item_id="item_1"):
    return fake_db.storage["inventory"][item_id]


async def test_example_total_and_warranty(fake_db, tenant, specialist):
    service = AttendanceService(db=fake_db)

    attendance = await service.finalize(make_draft(), tenant, specialist, now=JAN_10)

    assert attendance.total_value == 170
    assert attendance.warranty_until.date() == date(2025, 1, 9)
    assert attendance.warranty_id == "IB-2024-0001"
    assert attendance.technician_id == "spec_1"
    assert attendance.specialist_id == "spec_1"
    assert attendance.pending_effects == []

    stored = fake_db.storage["attendances"][attendance.id]
    assert stored["total_value"] == 170
    assert stored["is_deleted"] is False
    assert "id" not in stored
    assert "pending_effects" not in stored


async def test_warranty_uses_calendar_days():
    assert compute_warranty_until(JAN_10, 365).date() == date(2025, 1, 9)
    assert compute_warranty_until(JAN_10, 0) == JAN_10
    assert compute_warranty_until(JAN_10, 30) == JAN_10 + timedelta(days=30)


async def test_each_finalize_gets_unique_id_and_code(fake_db, tenant, specialist):
    service = AttendanceService(db=fake_db)

    created = [await service.finalize(make_draft(), tenant, specialist, now=JAN_10) for _ in range(3)]

    assert len({a.id for a in created}) == 3
    assert [a.warranty_id for a in created] == ["IB-2024-0001", "IB-2024-0002", "IB-2024-0003"]
    assert len(fake_db.storage["attendances"]) == 3


async def test_resubmitting_same_key_creates_nothing(fake_db, tenant, specialist):
    seed_item(fake_db, stock=5)
    service = AttendanceService(db=fake_db)

    first = await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist,
                                   now=JAN_10, attendance_id="sub_0001abcd")
    with pytest.raises(SubmissionInProgressError):
        await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist,
                               now=JAN_10, attendance_id="sub_0001abcd")

    assert first.id == "sub_0001abcd"
    assert list(fake_db.storage["attendances"]) == ["sub_0001abcd"]
    assert stored_item(fake_db)["current_stock"] == 4
    assert await service.warranty_ids.get_current_counter("t1", 2024) == 1


async def test_warranty_code_defaults_to_current_utc_year(fake_db, tenant):
    service = WarrantyIdService(db=fake_db)

    code = await service.generate_warranty_id(tenant)

    year = datetime.now(timezone.utc).year
    assert code == f"IB-{year}-0001"
    assert await service.get_current_counter("t1") == 1


async def test_warranty_sequence_is_per_tenant(fake_db, tenant, specialist):
    service = AttendanceService(db=fake_db)
    other_tenant = tenant.model_copy(update={"tenant_id": "t2", "warranty_prefix": "LJ"})
    other_actor = Actor(uid="x", name="Xavier", tenant_id="t2")

    await service.finalize(make_draft(), tenant, specialist, now=JAN_10)
    second = await service.finalize(make_draft(), other_tenant, other_actor, now=JAN_10)

    assert second.warranty_id == "LJ-2024-0001"


async def test_finalize_deducts_stock_with_floor(fake_db, tenant, specialist):
    seed_item(fake_db, stock=1, min_stock=2)
    service = AttendanceService(db=fake_db)
    assert is_critical(stored_item(fake_db))

    first = await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist, now=JAN_10)
    assert stored_item(fake_db)["current_stock"] == 0
    assert is_critical(stored_item(fake_db))

    movement = fake_db.storage["stock_movements"][f"auto_{first.id}"]
    assert movement["type"] == "AUTO_DEDUCTION"
    assert movement["previous_stock"] == 1
    assert movement["new_stock"] == 0
    assert movement["related_attendance_id"] == first.id

    await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist, now=JAN_10)
    assert stored_item(fake_db)["current_stock"] == 0


async def test_deduction_is_applied_once_per_attendance(fake_db, specialist):
    seed_item(fake_db, stock=5)
    service = AttendanceService(db=fake_db)

    ok, outcome, _ = await service.inventory.consume_for_attendance("t1", "item_1", "att_1", specialist)
    assert (ok, outcome) == (True, "deducted")
    ok, outcome, _ = await service.inventory.consume_for_attendance("t1", "item_1", "att_1", specialist)
    assert (ok, outcome) == (True, "already_applied")

    assert stored_item(fake_db)["current_stock"] == 4


async def test_item_of_other_tenant_is_not_touched(fake_db, tenant, specialist):
    seed_item(fake_db, stock=3, tenant_id="t2")
    service = AttendanceService(db=fake_db)

    attendance = await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist, now=JAN_10)

    assert stored_item(fake_db)["current_stock"] == 3
    assert attendance.pending_effects == []


async def test_failed_deduction_is_queued_and_retried(fake_db, tenant, specialist):
    seed_item(fake_db, stock=4)
    service = AttendanceService(db=fake_db)
    fake_db.fail("decrement_floored", "inventory")

    attendance = await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist, now=JAN_10)

    assert attendance.id in fake_db.storage["attendances"]
    assert attendance.pending_effects == [f"stock_deduction_{attendance.id}"]
    assert stored_item(fake_db)["current_stock"] == 4

    pending = await service.list_pending_effects("t1")
    assert len(pending) == 1
    assert pending[0]["attendance_id"] == attendance.id
    assert pending[0]["last_error"]

    fake_db.recover()
    summary = await service.retry_pending_effects("t1")

    assert summary == {"retried": 1, "done": 1, "failed": 0}
    assert stored_item(fake_db)["current_stock"] == 3
    assert await service.list_pending_effects("t1") == []
    assert (await service.retry_pending_effects("t1"))["retried"] == 0


async def test_retry_gives_up_after_max_attempts(fake_db, tenant, specialist, monkeypatch):
    monkeypatch.setattr(settings, "EFFECT_MAX_ATTEMPTS", 2)
    seed_item(fake_db, stock=4)
    service = AttendanceService(db=fake_db)
    fake_db.fail("decrement_floored", "inventory")

    attendance = await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist, now=JAN_10)
    summary = await service.retry_pending_effects()

    assert summary == {"retried": 1, "done": 0, "failed": 1}
    effect = fake_db.storage["pending_effects"][f"stock_deduction_{attendance.id}"]
    assert effect["status"] == "failed"
    assert effect["attempts"] == 2


async def test_persistence_failure_surfaces_and_stores_nothing(fake_db, tenant, specialist):
    seed_item(fake_db, stock=2)
    service = AttendanceService(db=fake_db)
    fake_db.fail("create_document", "attendances")

    with pytest.raises(PersistenceError):
        await service.finalize(make_draft(used_item_id="item_1"), tenant, specialist, now=JAN_10)

    assert fake_db.storage.get("attendances", {}) == {}
    assert stored_item(fake_db)["current_stock"] == 2


async def test_invalid_draft_is_rejected_before_any_write(fake_db, tenant, specialist):
    service = AttendanceService(db=fake_db)

    with pytest.raises(DraftValidationError) as exc:
        await service.finalize(make_draft(value_blindagem=0), tenant, specialist, now=JAN_10)

    assert exc.value.step == "COVERAGE"
    assert fake_db.storage == {}


async def test_actor_from_other_tenant_is_refused(fake_db, tenant):
    service = AttendanceService(db=fake_db)
    outsider = Actor(uid="x", name="Xavier", tenant_id="t2")

    with pytest.raises(PreconditionViolation):
        await service.finalize(make_draft(), tenant, outsider, now=JAN_10)


async def test_history_hides_deleted_and_is_newest_first(fake_db, tenant, specialist):
    service = AttendanceService(db=fake_db)
    older = await service.finalize(make_draft(client_name="Ana"), tenant, specialist, now=JAN_10)
    newer = await service.finalize(make_draft(client_name="Bia"), tenant, specialist,
                                   now=JAN_10 + timedelta(days=1))
    gone = await service.finalize(make_draft(client_name="Caio"), tenant, specialist,
                                  now=JAN_10 + timedelta(days=2))
    fake_db.storage["attendances"][gone.id]["is_deleted"] = True

    history = await service.list_attendances("t1")
    assert [a.id for a in history] == [newer.id, older.id]

    everything = await service.list_attendances("t1", include_deleted=True)
    assert [a.id for a in everything] == [gone.id, newer.id, older.id]


async def test_search_matches_warranty_code_case_insensitively(fake_db, tenant, specialist):
    service = AttendanceService(db=fake_db)
    first = await service.finalize(make_draft(client_name="Ana"), tenant, specialist, now=JAN_10)
    await service.finalize(make_draft(client_name="Bia", device_model="Galaxy S23"), tenant, specialist, now=JAN_10)

    assert [a.id for a in await service.search_attendances("t1", "ib-2024-0001")] == [first.id]
    assert len(await service.search_attendances("t1", "galaxy")) == 1
    assert len(await service.search_attendances("t1", "  ")) == 2
