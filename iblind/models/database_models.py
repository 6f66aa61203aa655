from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum
import math

# Inspection parts, in the order the intake shows them
INSPECTION_PARTS = ("screen", "back", "cameras", "buttons")


class ServiceCoverage(str, Enum):
    FULL = "FULL"
    SCREEN = "SCREEN"
    BACK = "BACK"
    CAMERAS = "CAMERAS"


class PaymentMethod(str, Enum):
    PIX = "PIX"
    CREDITO = "CREDITO"
    DEBITO = "DEBITO"
    DINHEIRO = "DINHEIRO"


class InventoryCategory(str, Enum):
    FILM = "FILM"
    CASE = "CASE"
    ACCESSORY = "ACCESSORY"


class MovementType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"
    AUTO_DEDUCTION = "AUTO_DEDUCTION"


def parse_money(value):
    """Accept numbers or user-typed strings such as "150", "150.5" or "R$ 1.234,56"."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        text = str(value).strip().replace("R$", "").replace(" ", "")
        if "," in text:
            # Brazilian format: dot for thousands, comma for decimals
            text = text.replace(".", "").replace(",", ".")
        try:
            result = float(text)
        except ValueError:
            raise ValueError(f"not a monetary value: {value!r}")
    if not math.isfinite(result):
        raise ValueError(f"not a monetary value: {value!r}")
    return result


# ──────────────────────────────────────────────────────────────────────────────
# Inspection state
# ──────────────────────────────────────────────────────────────────────────────

class PartInspection(BaseModel):
    has_damage: bool = False
    notes: Optional[str] = None


class InspectionState(BaseModel):
    screen: PartInspection = Field(default_factory=PartInspection)
    back: PartInspection = Field(default_factory=PartInspection)
    cameras: PartInspection = Field(default_factory=PartInspection)
    buttons: PartInspection = Field(default_factory=PartInspection)


# ──────────────────────────────────────────────────────────────────────────────
# Attendance (service record)
# ──────────────────────────────────────────────────────────────────────────────

class Attendance(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    tenant_id: str
    warranty_id: str  # e.g., "IB-2025-0001"
    date: datetime
    warranty_until: datetime

    # Staff snapshot taken at creation; later renames do not touch old records
    technician_id: str
    technician_name: str
    specialist_id: Optional[str] = None
    specialist_name: Optional[str] = None

    client_name: str
    client_phone: Optional[str] = None
    device_model: str
    device_imei: Optional[str] = None

    state: InspectionState = Field(default_factory=InspectionState)
    coverage: ServiceCoverage
    used_item_id: Optional[str] = None

    value_blindagem: float
    value_pelicula: float = 0.0
    value_others: float = 0.0
    total_value: float
    payment_method: PaymentMethod

    photos: List[str] = Field(default_factory=list)
    client_signature: str
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None

    # Ids of secondary effects still queued after finalize; never stored
    pending_effects: List[str] = Field(default_factory=list, exclude=True)

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})


# ──────────────────────────────────────────────────────────────────────────────
# Inventory
# ──────────────────────────────────────────────────────────────────────────────

class InventoryItem(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[str] = None
    tenant_id: Optional[str] = None
    sku: Optional[str] = None  # generated, e.g. "SKU-4F7Q"
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    type: str = "SCREEN"  # part the item protects
    material: Optional[str] = None
    category: InventoryCategory = InventoryCategory.FILM
    current_stock: int = Field(default=0, ge=0)
    min_stock: int = Field(default=2, ge=0)
    supplier: Optional[str] = None
    cost_price: Optional[float] = Field(default=None, ge=0)
    suggested_price: Optional[float] = Field(default=None, ge=0)
    last_entry_date: Optional[datetime] = None
    assigned_specialist_id: Optional[str] = None
    assigned_specialist_name: Optional[str] = None
    observations: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_critical(self) -> bool:
        return self.current_stock <= self.min_stock


class InventoryItemUpdate(BaseModel):
    """Editable descriptive fields; stock goes through restock/adjust."""
    model_config = ConfigDict(use_enum_values=True, extra="forbid")

    brand: Optional[str] = Field(default=None, min_length=1)
    model: Optional[str] = Field(default=None, min_length=1)
    type: Optional[str] = None
    material: Optional[str] = None
    category: Optional[InventoryCategory] = None
    min_stock: Optional[int] = Field(default=None, ge=0)
    supplier: Optional[str] = None
    cost_price: Optional[float] = Field(default=None, ge=0)
    suggested_price: Optional[float] = Field(default=None, ge=0)
    observations: Optional[str] = None


class StockMovement(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[str] = None
    tenant_id: str
    item_id: str
    type: MovementType
    quantity: int
    previous_stock: int
    new_stock: int
    user_id: str
    user_name: Optional[str] = None
    reason: Optional[str] = None
    related_attendance_id: Optional[str] = None
    timestamp: Optional[datetime] = None


# ──────────────────────────────────────────────────────────────────────────────
# Audit trail
# ──────────────────────────────────────────────────────────────────────────────

class AuditLog(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    tenant_id: str
    user_id: str
    user_name: Optional[str] = None
    action: str  # e.g. "EXCLUSÃO"
    details: str
    timestamp: datetime
    target_id: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Tenant settings
# ──────────────────────────────────────────────────────────────────────────────

class TenantConfig(BaseModel):
    tenant_id: str
    company_name: str
    warranty_default_days: int = Field(default=365, ge=0)
    warranty_prefix: str = Field(default="IB", min_length=1, max_length=8)
    allow_custom_pricing: bool = True
    primary_color: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("warranty_prefix")
    @classmethod
    def _upper_prefix(cls, v: str) -> str:
        return v.strip().upper()


class TenantConfigUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company_name: Optional[str] = Field(default=None, min_length=1)
    warranty_default_days: Optional[int] = Field(default=None, ge=0)
    warranty_prefix: Optional[str] = Field(default=None, min_length=1, max_length=8)
    allow_custom_pricing: Optional[bool] = None
    primary_color: Optional[str] = None
    logo_url: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Bookkeeping
# ──────────────────────────────────────────────────────────────────────────────

# Counter model for warranty code generation
class Counter(BaseModel):
    id: Optional[str] = None
    tenant_id: Optional[str] = None
    year: int
    counter: int
    last_updated: Optional[datetime] = None


class PendingEffect(BaseModel):
    """A secondary write that failed after its attendance was created."""
    id: str
    tenant_id: str
    effect_type: str = "stock_deduction"
    attendance_id: str
    item_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None
    status: str = "pending"  # pending, done, failed
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
