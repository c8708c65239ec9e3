# models.py
from decimal import Decimal
from enum import Enum
from typing import Optional
from datetime import date
from sqlmodel import SQLModel, Field


# ---------- Tables ----------
class Owner(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    email: Optional[str] = None


class Car(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    vin: str = Field(index=True, unique=True)   # compared case-insensitively on insert
    make: Optional[str] = None                  # e.g. "Dacia"
    model: Optional[str] = None                 # e.g. "Logan"
    year_of_manufacture: int
    owner_id: int = Field(foreign_key="owner.id")


class InsurancePolicy(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    car_id: int = Field(foreign_key="car.id", index=True)
    provider: str
    start_date: date           # inclusive
    end_date: date             # inclusive
    notified: bool = Field(default=False)   # set once by the expiration scan, never reset


class Claim(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    car_id: int = Field(foreign_key="car.id", index=True)
    claim_date: date
    description: str
    amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)


# ---------- Request / response bodies ----------
class OwnerCreate(SQLModel):
    name: str = Field(min_length=1)
    email: Optional[str] = None


class OwnerRead(SQLModel):
    id: int
    name: str
    email: Optional[str] = None


class CarCreate(SQLModel):
    vin: str = Field(min_length=1, max_length=32)
    make: Optional[str] = None
    model: Optional[str] = None
    year_of_manufacture: int = Field(ge=1886)
    owner_id: int


class CarRead(SQLModel):
    id: int
    vin: str
    make: Optional[str] = None
    model: Optional[str] = None
    year_of_manufacture: int
    owner_id: int
    owner_name: str
    owner_email: Optional[str] = None


class PolicyCreate(SQLModel):
    provider: str = Field(min_length=1)
    start_date: date
    end_date: date


class PolicyRead(SQLModel):
    id: int
    car_id: int
    provider: str
    start_date: date
    end_date: date


class ClaimCreate(SQLModel):
    claim_date: date
    description: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class ClaimRead(SQLModel):
    id: int
    car_id: int
    claim_date: date
    description: str
    amount: Decimal


class InsuranceValidity(SQLModel):
    car_id: int
    date: str                  # YYYY-MM-DD
    valid: bool


class HistoryEventType(str, Enum):
    POLICY_START = "Policy Start"
    POLICY_END = "Policy End"
    CLAIM = "Claim"


class HistoryItem(SQLModel):
    """Built from policies and claims on every history request; never stored."""

    event_date: date
    event_type: HistoryEventType
    description: str
