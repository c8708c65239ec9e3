"""Shared fixtures: in-memory database, seeded records and an API client."""

import os

# Keep the app off the real database file and the background scheduler
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_SCHEDULER", "false")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

import models  # noqa: F401  registers the tables on SQLModel.metadata
from insurance import create_car, create_owner


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def owner(session):
    return create_owner(session, "Ana Popescu", "ana@example.com")


@pytest.fixture
def car(session, owner):
    return create_car(
        session,
        vin="VIN12345",
        make="Dacia",
        model="Logan",
        year_of_manufacture=2018,
        owner_id=owner.id,
    )


@pytest.fixture
def client(engine):
    from main import app, get_session

    def session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = session_override
    yield TestClient(app)
    app.dependency_overrides.clear()
