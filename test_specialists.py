import pytest

from iblind.core.exceptions import NotFoundError, PersistenceError, PreconditionViolation
from iblind.models.database_models import TenantConfigUpdate
from iblind.models.intake_models import IntakeDraft
from iblind.models.user import SpecialistCreate
from iblind.services.attendance_service import AttendanceService
from iblind.services.inventory_service import InventoryService
from iblind.services.specialist_service import SpecialistService
from iblind.services.tenant_service import TenantService

pytestmark = pytest.mark.asyncio


async def test_admin_adds_specialist(fake_db, admin):
    service = SpecialistService(db=fake_db)

    user = await service.add_specialist(SpecialistCreate(name="  Bruno Lima ", email="Bruno@IBlind.com.br"), admin)

    assert user.email == "bruno@iblind.com.br"
    assert user.name == "Bruno Lima"
    assert user.role == "SPECIALIST"
    roster = await service.get_roster("t1")
    assert roster == [{"id": user.id, "name": "Bruno Lima"}]


async def test_email_must_be_unique(fake_db, admin):
    service = SpecialistService(db=fake_db)
    await service.add_specialist(SpecialistCreate(name="Bruno", email="bruno@iblind.com.br"), admin)

    with pytest.raises(PreconditionViolation):
        await service.add_specialist(SpecialistCreate(name="Outro", email="BRUNO@iblind.com.br"), admin)


async def test_specialist_cannot_manage_team(fake_db, specialist):
    service = SpecialistService(db=fake_db)

    with pytest.raises(PreconditionViolation):
        await service.add_specialist(SpecialistCreate(name="Ana", email="ana@iblind.com.br"), specialist)
    with pytest.raises(PreconditionViolation):
        await service.delete_specialist("anyone", specialist)


async def test_delete_specialist_refuses_admins(fake_db, admin):
    service = SpecialistService(db=fake_db)
    fake_db.storage["users"] = {
        "admin_1": {"tenant_id": "t1", "email": "carla@iblind.com.br", "name": "Carla", "role": "ADMIN"},
        "spec_2": {"tenant_id": "t1", "email": "davi@iblind.com.br", "name": "Davi", "role": "SPECIALIST"},
        "spec_9": {"tenant_id": "t2", "email": "eva@iblind.com.br", "name": "Eva", "role": "SPECIALIST"},
    }

    with pytest.raises(PreconditionViolation):
        await service.delete_specialist("admin_1", admin)
    with pytest.raises(NotFoundError):
        await service.delete_specialist("spec_9", admin)

    await service.delete_specialist("spec_2", admin)
    assert "spec_2" not in fake_db.storage["users"]
    assert "admin_1" in fake_db.storage["users"]


async def test_deleting_specialist_returns_items_to_pool(fake_db, admin):
    service = SpecialistService(db=fake_db)
    fake_db.storage["users"] = {
        "spec_2": {"tenant_id": "t1", "email": "davi@iblind.com.br", "name": "Davi", "role": "SPECIALIST"},
    }
    fake_db.storage["inventory"] = {
        "item_1": {"tenant_id": "t1", "current_stock": 3,
                   "assigned_specialist_id": "spec_2", "assigned_specialist_name": "Davi"},
        "item_2": {"tenant_id": "t1", "current_stock": 1,
                   "assigned_specialist_id": "spec_3", "assigned_specialist_name": "Eva"},
        "item_3": {"tenant_id": "t2", "current_stock": 5,
                   "assigned_specialist_id": "spec_2", "assigned_specialist_name": "Davi"},
    }

    released = await service.delete_specialist("spec_2", admin)

    inventory = fake_db.storage["inventory"]
    assert released == 1
    assert inventory["item_1"]["assigned_specialist_id"] is None
    assert inventory["item_1"]["assigned_specialist_name"] is None
    assert inventory["item_1"]["current_stock"] == 3
    assert inventory["item_2"]["assigned_specialist_id"] == "spec_3"
    assert inventory["item_3"]["assigned_specialist_id"] == "spec_2"
    assert "spec_2" not in fake_db.storage["users"]


async def test_failed_delete_keeps_specialist_and_assignments(fake_db, admin):
    service = SpecialistService(db=fake_db)
    fake_db.storage["users"] = {
        "spec_2": {"tenant_id": "t1", "email": "davi@iblind.com.br", "name": "Davi", "role": "SPECIALIST"},
    }
    fake_db.storage["inventory"] = {
        "item_1": {"tenant_id": "t1", "assigned_specialist_id": "spec_2", "assigned_specialist_name": "Davi"},
    }
    fake_db.fail("batch_write")

    with pytest.raises(PersistenceError):
        await service.delete_specialist("spec_2", admin)

    assert "spec_2" in fake_db.storage["users"]
    assert fake_db.storage["inventory"]["item_1"]["assigned_specialist_id"] == "spec_2"


async def test_roster_is_scoped_and_sorted(fake_db):
    service = SpecialistService(db=fake_db)
    fake_db.storage["users"] = {
        "u1": {"tenant_id": "t1", "name": "zeca", "role": "SPECIALIST"},
        "u2": {"tenant_id": "t1", "name": "Ana", "role": "SPECIALIST"},
        "u3": {"tenant_id": "t1", "name": "Carla", "role": "ADMIN"},
        "u4": {"tenant_id": "t2", "name": "Bia", "role": "SPECIALIST"},
    }

    assert [s["name"] for s in await service.get_roster("t1")] == ["Ana", "zeca"]


async def test_tenant_config_defaults_and_update(fake_db, admin, specialist):
    service = TenantService(db=fake_db)

    config = await service.get_tenant_config("t1")
    assert config.warranty_default_days == 365
    assert config.warranty_prefix == "IB"

    updated = await service.update_tenant_config(
        "t1", TenantConfigUpdate(company_name="Blindagem Express", warranty_default_days=180, warranty_prefix="be"), admin
    )
    assert updated.warranty_prefix == "BE"
    reloaded = await service.get_tenant_config("t1")
    assert reloaded.company_name == "Blindagem Express"
    assert reloaded.warranty_default_days == 180

    with pytest.raises(PreconditionViolation):
        await service.update_tenant_config("t1", TenantConfigUpdate(company_name="X"), specialist)


async def test_backup_includes_deleted_history(fake_db, tenant, specialist):
    attendances = AttendanceService(db=fake_db)
    service = TenantService(db=fake_db, attendances=attendances, inventory=InventoryService(db=fake_db))
    fake_db.storage["inventory"] = {"item_1": {"tenant_id": "t1", "sku": "SKU-0001", "current_stock": 4, "min_stock": 2}}

    draft = IntakeDraft(client_name="Ana", device_model="iPhone 15", value_blindagem=90, client_signature="sig")
    kept = await attendances.finalize(draft, tenant, specialist)
    gone = await attendances.finalize(draft, tenant, specialist)
    fake_db.storage["attendances"][gone.id]["is_deleted"] = True

    backup = await service.export_backup("t1")

    assert {a["id"] for a in backup["history"]} == {kept.id, gone.id}
    assert isinstance(backup["history"][0]["date"], str)
    assert backup["inventory"][0]["sku"] == "SKU-0001"
    assert "_doc_id" not in backup["inventory"][0]
    assert backup["tenant"]["tenant_id"] == "t1"
    assert backup["export_date"]
