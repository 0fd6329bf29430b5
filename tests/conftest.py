"""Pytest configuration and fixtures."""
import asyncio
import os

# Must be set before bookwise.config.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MINIMUM_NOTICE_HOURS", "2")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookwise.config.database import create_tables
from bookwise.schemas.availability import ServiceConfig
from tests.fakes import FakeBusyTimes, FakeRepository, at


@pytest.fixture
def run():
    """Drive a coroutine to completion"""
    return asyncio.run


@pytest.fixture
def now():
    # Sunday noon, the day before the Monday most tests book on
    return at(2025, 3, 9, 12, 0)


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def busy_times() -> FakeBusyTimes:
    return FakeBusyTimes()


@pytest.fixture
def half_hour() -> ServiceConfig:
    return ServiceConfig(duration_minutes=30, buffer_minutes=0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
