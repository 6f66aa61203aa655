from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any
from enum import Enum

from .database_models import (
    InspectionState, ServiceCoverage, PaymentMethod, parse_money
)


class WizardStep(str, Enum):
    CLIENT = "CLIENT"            # client and device capture
    INSPECTION = "INSPECTION"    # condition on arrival, photos
    COVERAGE = "COVERAGE"        # coverage, values, payment
    SIGNATURE = "SIGNATURE"      # client signature, finalize


STEPS: List[WizardStep] = [
    WizardStep.CLIENT,
    WizardStep.INSPECTION,
    WizardStep.COVERAGE,
    WizardStep.SIGNATURE,
]


class IntakeDraft(BaseModel):
    """In-progress attendance data accumulated by the intake wizard.

    ``total_value`` is derived from the three value fields and cannot be
    assigned: the model forbids unknown fields.
    """
    model_config = ConfigDict(use_enum_values=True, extra="forbid", validate_assignment=True)

    client_name: str = ""
    client_phone: Optional[str] = None
    device_model: str = ""
    device_imei: Optional[str] = None
    specialist_id: Optional[str] = None
    specialist_name: Optional[str] = None

    state: InspectionState = Field(default_factory=InspectionState)
    photos: List[str] = Field(default_factory=list)

    coverage: Optional[ServiceCoverage] = ServiceCoverage.FULL
    payment_method: Optional[PaymentMethod] = PaymentMethod.PIX
    value_blindagem: float = 0.0
    value_pelicula: float = 0.0
    value_others: float = 0.0
    used_item_id: Optional[str] = None

    client_signature: Optional[str] = None

    @field_validator("value_blindagem", "value_pelicula", "value_others", mode="before")
    @classmethod
    def _money(cls, v):
        return parse_money(v)

    @property
    def total_value(self) -> float:
        return round(
            (self.value_blindagem or 0) + (self.value_pelicula or 0) + (self.value_others or 0),
            2,
        )

    @property
    def has_data(self) -> bool:
        """True once anything differs from a blank draft."""
        return self.model_dump() != IntakeDraft().model_dump()


class IntakeUpdate(BaseModel):
    """Request body for partial draft updates over HTTP."""
    model_config = ConfigDict(extra="forbid")

    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    device_model: Optional[str] = None
    device_imei: Optional[str] = None
    specialist_id: Optional[str] = None
    coverage: Optional[ServiceCoverage] = None
    payment_method: Optional[PaymentMethod] = None
    value_blindagem: Optional[Any] = None
    value_pelicula: Optional[Any] = None
    value_others: Optional[Any] = None
    used_item_id: Optional[str] = None
    client_signature: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class PartUpdate(BaseModel):
    has_damage: bool
    notes: Optional[str] = None


class PhotoUpload(BaseModel):
    uri: str = Field(..., min_length=1)
