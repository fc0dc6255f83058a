from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base
from domain.results import FailurePolicy
from services.engine import SettlementEngine
from tests.constants import ALL_STATES
from tests.helpers.fake_clock import FakeClock
from tests.helpers.in_memory_source import InMemoryConfigurationSource

engine: Engine = create_engine(
    "sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def test_session_factory() -> sessionmaker[Session]:
    return session_factory


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def source() -> InMemoryConfigurationSource:
    return InMemoryConfigurationSource(states=list(ALL_STATES))


@pytest.fixture(scope="function")
def settlement_engine(
    source: InMemoryConfigurationSource, clock: FakeClock
) -> Generator[SettlementEngine, None, None]:
    with SettlementEngine(source, clock=clock) as engine:
        yield engine


@pytest.fixture(scope="function")
def fail_closed_engine(
    source: InMemoryConfigurationSource, clock: FakeClock
) -> Generator[SettlementEngine, None, None]:
    with SettlementEngine(source, clock=clock, failure_policy=FailurePolicy.FAIL_CLOSED) as engine:
        yield engine
