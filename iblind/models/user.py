from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from enum import Enum
from datetime import datetime

# ──────────────────────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────────────────────

class UserRole(str, Enum):
    ADMIN = "ADMIN"
    SPECIALIST = "SPECIALIST"


# ──────────────────────────────────────────────────────────────────────────────
# Authenticated actor (read-only input built from Firebase token claims)
# ──────────────────────────────────────────────────────────────────────────────

class Actor(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    uid: str
    name: str
    email: Optional[str] = None
    role: UserRole = UserRole.SPECIALIST
    tenant_id: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_claims(cls, claims: dict) -> "Actor":
        role = str(claims.get("role") or UserRole.SPECIALIST.value).upper()
        # Accept the Portuguese role name used by the dashboard's older sessions
        if role == "ESPECIALISTA":
            role = UserRole.SPECIALIST.value
        return cls(
            uid=claims.get("uid") or claims.get("user_id"),
            name=claims.get("name") or claims.get("full_name") or claims.get("email") or "Operador",
            email=claims.get("email"),
            role=role,
            tenant_id=claims.get("tenant_id"),
        )


# ──────────────────────────────────────────────────────────────────────────────
# Specialists / users
# ──────────────────────────────────────────────────────────────────────────────

class User(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[str] = None
    tenant_id: str
    email: EmailStr
    name: str
    role: UserRole = UserRole.SPECIALIST
    created_at: Optional[datetime] = None


class SpecialistCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v
