# insurance.py
import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from operator import attrgetter
from typing import Iterable, List, NamedTuple, Optional, Union

from sqlmodel import Session, func, select

from models import (
    Car,
    CarRead,
    Claim,
    HistoryEventType,
    HistoryItem,
    InsurancePolicy,
    Owner,
)

logger = logging.getLogger(__name__)


class Failure(str, Enum):
    """Expected outcomes that are not a created record; routes map these to HTTP errors."""

    CAR_NOT_FOUND = "car_not_found"
    OWNER_NOT_FOUND = "owner_not_found"
    OVERLAP_CONFLICT = "overlap_conflict"
    INVALID_RANGE = "invalid_range"
    VIN_CONFLICT = "vin_conflict"


class Validity(NamedTuple):
    found: bool
    valid: bool


# ---------- Date ranges ----------
def overlaps(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """
    True if the inclusive ranges [start_a, end_a] and [start_b, end_b] share
    at least one day. A range ending on the day another starts overlaps it.
    Both ranges must already satisfy start <= end.
    """
    return start_a <= end_b and end_a >= start_b


def covers(policy: InsurancePolicy, on: date) -> bool:
    return overlaps(policy.start_date, policy.end_date, on, on)


def format_amount(amount) -> str:
    return f"{Decimal(amount):,.2f}"


# ---------- Lookups ----------
def car_exists(session: Session, car_id: int) -> bool:
    return session.get(Car, car_id) is not None


def policies_for_car(session: Session, car_id: int) -> List[InsurancePolicy]:
    stmt = (
        select(InsurancePolicy)
        .where(InsurancePolicy.car_id == car_id)
        .order_by(InsurancePolicy.id)
    )
    return list(session.exec(stmt).all())


def claims_for_car(session: Session, car_id: int) -> List[Claim]:
    stmt = select(Claim).where(Claim.car_id == car_id).order_by(Claim.id)
    return list(session.exec(stmt).all())


# ---------- Validity ----------
def check_validity(session: Session, car_id: int, on: date) -> Validity:
    """
    Report whether car_id is insured on the given day.
    An unknown car gives found=False instead of raising. Several policies
    covering the same day are accepted as-is.
    """
    if not car_exists(session, car_id):
        return Validity(found=False, valid=False)
    valid = any(covers(p, on) for p in policies_for_car(session, car_id))
    return Validity(found=True, valid=valid)


# ---------- History ----------
def build_history(
    policies: Iterable[InsurancePolicy], claims: Iterable[Claim]
) -> List[HistoryItem]:
    """
    Merge policies and claims into one list ordered by date.
    Items on the same date keep the order they were generated in: every
    policy item before every claim item, each in the order given.
    """
    items = []
    for policy in policies:
        items.append(
            HistoryItem(
                event_date=policy.start_date,
                event_type=HistoryEventType.POLICY_START,
                description=f"Provider: {policy.provider}, Valid until: {policy.end_date.isoformat()}",
            )
        )
        items.append(
            HistoryItem(
                event_date=policy.end_date,
                event_type=HistoryEventType.POLICY_END,
                description=f"Provider: {policy.provider}",
            )
        )
    for claim in claims:
        items.append(
            HistoryItem(
                event_date=claim.claim_date,
                event_type=HistoryEventType.CLAIM,
                description=f"Description: {claim.description}, Amount: {format_amount(claim.amount)}",
            )
        )
    # sorted() is stable, which keeps the tie order above
    return sorted(items, key=attrgetter("event_date"))


def car_history(session: Session, car_id: int) -> Optional[List[HistoryItem]]:
    if not car_exists(session, car_id):
        return None
    return build_history(
        policies_for_car(session, car_id), claims_for_car(session, car_id)
    )


# ---------- Policies & claims ----------
def register_policy(
    session: Session,
    car_id: int,
    provider: str,
    start_date: date,
    end_date: date,
) -> Union[InsurancePolicy, Failure]:
    if start_date >= end_date:
        return Failure.INVALID_RANGE
    if not car_exists(session, car_id):
        return Failure.CAR_NOT_FOUND

    for existing in policies_for_car(session, car_id):
        if overlaps(start_date, end_date, existing.start_date, existing.end_date):
            logger.info(
                "Rejected policy %s..%s for car %s: overlaps policy %s (%s..%s)",
                start_date, end_date, car_id,
                existing.id, existing.start_date, existing.end_date,
            )
            return Failure.OVERLAP_CONFLICT

    # TODO: add an exclusion constraint over (car_id, daterange) on Postgres so
    # two concurrent registrations cannot both pass the check above.
    policy = InsurancePolicy(
        car_id=car_id,
        provider=provider,
        start_date=start_date,
        end_date=end_date,
    )
    session.add(policy)
    session.commit()
    session.refresh(policy)
    logger.info(
        "Registered policy %s for car %s (%s, %s..%s)",
        policy.id, car_id, provider, start_date, end_date,
    )
    return policy


def register_claim(
    session: Session,
    car_id: int,
    claim_date: date,
    description: str,
    amount: Decimal,
) -> Union[Claim, Failure]:
    if not car_exists(session, car_id):
        return Failure.CAR_NOT_FOUND

    claim = Claim(
        car_id=car_id,
        claim_date=claim_date,
        description=description,
        amount=amount,
    )
    session.add(claim)
    session.commit()
    session.refresh(claim)
    logger.info("Registered claim %s for car %s on %s", claim.id, car_id, claim_date)
    return claim


# ---------- Owners & cars ----------
def create_owner(session: Session, name: str, email: Optional[str] = None) -> Owner:
    owner = Owner(name=name, email=email)
    session.add(owner)
    session.commit()
    session.refresh(owner)
    return owner


def list_owners(session: Session) -> List[Owner]:
    return list(session.exec(select(Owner).order_by(Owner.id)).all())


def create_car(
    session: Session,
    vin: str,
    make: Optional[str],
    model: Optional[str],
    year_of_manufacture: int,
    owner_id: int,
) -> Union[Car, Failure]:
    if session.get(Owner, owner_id) is None:
        return Failure.OWNER_NOT_FOUND

    clash = session.exec(
        select(Car).where(func.upper(Car.vin) == vin.upper())
    ).first()
    if clash:
        return Failure.VIN_CONFLICT

    car = Car(
        vin=vin,
        make=make,
        model=model,
        year_of_manufacture=year_of_manufacture,
        owner_id=owner_id,
    )
    session.add(car)
    session.commit()
    session.refresh(car)
    logger.info("Registered car %s (VIN %s) for owner %s", car.id, vin, owner_id)
    return car


def to_car_read(car: Car, owner: Owner) -> CarRead:
    return CarRead(
        id=car.id,
        vin=car.vin,
        make=car.make,
        model=car.model,
        year_of_manufacture=car.year_of_manufacture,
        owner_id=car.owner_id,
        owner_name=owner.name,
        owner_email=owner.email,
    )


def list_cars(session: Session) -> List[CarRead]:
    rows = session.exec(
        select(Car, Owner).join(Owner, Car.owner_id == Owner.id).order_by(Car.id)
    ).all()
    return [to_car_read(car, owner) for car, owner in rows]
