# farmhub/schemas.py
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import Gender
from .utils import normalize_date_string

T = TypeVar("T")


class CamelModel(BaseModel):
    """JSON uses camelCase; Python attributes stay snake_case."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ---------- users ----------

class UserBase(CamelModel):
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    gender: Gender
    dob: str = Field(..., examples=["2000-01-01"])
    residence_county: str
    residence_location: str
    email: EmailStr
    business_number: Optional[str] = None
    phone_number: str = Field(..., examples=["+254720123456"])

    @field_validator("dob")
    @classmethod
    def _dob(cls, v: str) -> str:
        return normalize_date_string(v)


class UserCreate(UserBase):
    pin: str = Field(..., min_length=4, max_length=12)


class UserUpdate(CamelModel):
    """Sparse patch: only the fields a caller sends are applied."""

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: Optional[Gender] = None
    dob: Optional[str] = None
    residence_county: Optional[str] = None
    residence_location: Optional[str] = None
    email: Optional[EmailStr] = None
    business_number: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator(
        "first_name", "last_name", "gender", "dob",
        "residence_county", "residence_location", "email", "phone_number",
    )
    @classmethod
    def _not_null(cls, v):
        # omitted is fine, explicit null is not
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("dob")
    @classmethod
    def _dob(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else normalize_date_string(v)


# ---------- farms ----------

class FarmBase(CamelModel):
    name: str
    county: str
    administrative_location: str
    size: float = Field(..., gt=0, description="Size in hectares")
    ownership: str = Field(..., examples=["Freehold"])
    farming_types: List[str] = Field(default_factory=list)


class FarmCreate(FarmBase):
    user_id: str


class FarmUpdate(CamelModel):
    """Sparse patch; the owning user cannot be changed."""

    name: Optional[str] = None
    county: Optional[str] = None
    administrative_location: Optional[str] = None
    size: Optional[float] = Field(default=None, gt=0)
    ownership: Optional[str] = None
    farming_types: Optional[List[str]] = None

    @field_validator("name", "county", "administrative_location", "size", "ownership", "farming_types")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v


class FarmSummary(FarmBase):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


class FarmOwner(CamelModel):
    # public subset of a user, as embedded in farm responses
    id: str
    first_name: str
    last_name: str
    phone_number: str
    email: str


class FarmOut(FarmSummary):
    user: FarmOwner


class UserOut(CamelModel):
    """Outbound user record. Allow-list: the PIN is not a field here."""

    id: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    gender: Gender
    dob: str
    residence_county: str
    residence_location: str
    email: str
    business_number: Optional[str] = None
    phone_number: str
    created_at: datetime
    updated_at: datetime
    farms: List[FarmSummary] = Field(default_factory=list)


# ---------- envelopes ----------

class PageMeta(CamelModel):
    total: int
    page: int
    pages: int
    has_next_page: bool
    has_prev_page: bool


class Page(CamelModel, Generic[T]):
    data: List[T]
    meta: PageMeta


class Message(CamelModel):
    message: str
