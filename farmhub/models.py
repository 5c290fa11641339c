# farmhub/models.py
import enum
import uuid

from sqlalchemy import Column, String, Float, DateTime, JSON, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from .db import Base
from .utils import to_aware_utc, utcnow


def new_id() -> str:
    return uuid.uuid4().hex


class Gender(str, enum.Enum):
    Male = "Male"
    Female = "Female"


class UTCDateTime(TypeDecorator):
    """DateTime that is always aware UTC, both when written and when read back."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else to_aware_utc(value)

    def process_result_value(self, value, dialect):
        # SQLite hands back naive values
        return None if value is None else to_aware_utc(value)


class TimestampMixin:
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    first_name = Column(String, nullable=False)
    middle_name = Column(String, nullable=True)
    last_name = Column(String, nullable=False)
    gender = Column(Enum(Gender, name="gender"), nullable=False)
    dob = Column(String, nullable=False)                        # 'YYYY-MM-DD'
    residence_county = Column(String, nullable=False)
    residence_location = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    business_number = Column(String, nullable=True)
    phone_number = Column(String, nullable=False, unique=True)
    pin = Column(String, nullable=False)                        # salted hash, never serialized

    # No cascade: the users -> farms FK restricts deletes of owners
    farms = relationship(
        "Farm",
        back_populates="user",
        passive_deletes="all",
        order_by="Farm.created_at.desc()",
    )


class Farm(TimestampMixin, Base):
    __tablename__ = "farms"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    county = Column(String, nullable=False)
    administrative_location = Column(String, nullable=False)
    size = Column(Float, nullable=False)                        # hectares
    ownership = Column(String, nullable=False)                  # e.g. "Freehold", "Leasehold"
    farming_types = Column(JSON, nullable=False, default=list)  # ordered list of category names

    user_id = Column(
        String,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user = relationship("User", back_populates="farms")
