# main.py
import os
import logging
from datetime import date, datetime
from typing import List

from fastapi import (
    FastAPI,
    Depends,
    HTTPException,
    Query,
    status,
)

from sqlmodel import SQLModel, Session, create_engine

import insurance
from expiration import ExpirationScanner
from insurance import Failure
from models import (
    CarCreate,
    CarRead,
    ClaimCreate,
    ClaimRead,
    HistoryItem,
    InsuranceValidity,
    Owner,
    OwnerCreate,
    OwnerRead,
    PolicyCreate,
    PolicyRead,
)

# ---------- Config ----------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./car_insurance.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Expiration scan cadence (seconds) and whether missed days are picked up later
EXPIRATION_SCAN_SECONDS = int(os.getenv("EXPIRATION_SCAN_SECONDS", "10"))
EXPIRATION_CATCH_UP = os.getenv("EXPIRATION_CATCH_UP", "true").lower() == "true"
RUN_SCHEDULER = os.getenv("RUN_SCHEDULER", "true").lower() == "true"

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("car_insurance")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)


# ---------- App ----------
app = FastAPI(title="Car Insurance Records")
scanner = ExpirationScanner(
    engine,
    interval_seconds=EXPIRATION_SCAN_SECONDS,
    catch_up=EXPIRATION_CATCH_UP,
)


# ---------- DB helpers ----------
def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session


def car_not_found(car_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Car with ID {car_id} not found.",
    )


# ---------- Startup / Shutdown ----------
@app.on_event("startup")
def on_startup():
    create_db_and_tables()
    if RUN_SCHEDULER:
        scanner.start()
        logger.info("Expiration scanner started")


@app.on_event("shutdown")
def on_shutdown():
    scanner.stop()


# ---------- Owners ----------
@app.post("/api/owners", response_model=OwnerRead, status_code=status.HTTP_201_CREATED)
def create_owner(body: OwnerCreate, session: Session = Depends(get_session)):
    return insurance.create_owner(session, body.name, body.email)


@app.get("/api/owners", response_model=List[OwnerRead])
def list_owners(session: Session = Depends(get_session)):
    return insurance.list_owners(session)


# ---------- Cars ----------
@app.get("/api/cars", response_model=List[CarRead])
def list_cars(session: Session = Depends(get_session)):
    return insurance.list_cars(session)


@app.post("/api/cars", response_model=CarRead, status_code=status.HTTP_201_CREATED)
def create_car(body: CarCreate, session: Session = Depends(get_session)):
    result = insurance.create_car(
        session,
        vin=body.vin,
        make=body.make,
        model=body.model,
        year_of_manufacture=body.year_of_manufacture,
        owner_id=body.owner_id,
    )
    if result is Failure.OWNER_NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Owner with ID {body.owner_id} not found.",
        )
    if result is Failure.VIN_CONFLICT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A car with VIN '{body.vin}' already exists.",
        )
    owner = session.get(Owner, result.owner_id)
    return insurance.to_car_read(result, owner)


@app.get("/api/cars/{car_id}/insurance-valid", response_model=InsuranceValidity)
def insurance_valid(
    car_id: int,
    date_str: str = Query(..., alias="date"),
    session: Session = Depends(get_session),
):
    try:
        on = datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format. Use YYYY-MM-DD.",
        )

    result = insurance.check_validity(session, car_id, on)
    if not result.found:
        raise car_not_found(car_id)
    return InsuranceValidity(car_id=car_id, date=on.isoformat(), valid=result.valid)


# ---------- Policies ----------
@app.post(
    "/api/cars/{car_id}/policies",
    response_model=PolicyRead,
    status_code=status.HTTP_201_CREATED,
)
def create_policy(
    car_id: int,
    body: PolicyCreate,
    session: Session = Depends(get_session),
):
    if body.start_date >= body.end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Policy start_date must be before end_date.",
        )

    result = insurance.register_policy(
        session, car_id, body.provider, body.start_date, body.end_date
    )
    if result is Failure.CAR_NOT_FOUND:
        raise car_not_found(car_id)
    if result is Failure.OVERLAP_CONFLICT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The provided policy dates overlap with an existing policy for this car.",
        )
    return result


# ---------- Claims ----------
@app.post(
    "/api/cars/{car_id}/claims",
    response_model=ClaimRead,
    status_code=status.HTTP_201_CREATED,
)
def create_claim(
    car_id: int,
    body: ClaimCreate,
    session: Session = Depends(get_session),
):
    result = insurance.register_claim(
        session, car_id, body.claim_date, body.description, body.amount
    )
    if result is Failure.CAR_NOT_FOUND:
        raise car_not_found(car_id)
    return result


# ---------- History ----------
@app.get("/api/cars/{car_id}/history", response_model=List[HistoryItem])
def car_history(car_id: int, session: Session = Depends(get_session)):
    history = insurance.car_history(session, car_id)
    if history is None:
        raise car_not_found(car_id)
    return history
