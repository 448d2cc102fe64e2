"""Test configuration."""

import os

# Must be set before settings are instantiated on import
os.environ.setdefault("TESTING", "true")

import random
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pytest import Config
from sqlalchemy.orm import Session

from lineup_geo.core.db import create_db_engine, create_session_factory, init_db
from lineup_geo.core.geocoding.validator import CoordinateValidator
from lineup_geo.core.logging import configure_logging

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    # Configure logging for test environment
    configure_logging(testing=True)
    config.addinivalue_line("markers", "integration: mark test as an integration test")


class SequenceRandom:
    """Random source that replays fixed offsets and records the ranges asked for."""

    def __init__(self, values: list[float], default: float = 0.0):
        self.values = list(values)
        self.default = default
        self.calls: list[tuple[float, float]] = []

    def uniform(self, a: float, b: float) -> float:
        self.calls.append((a, b))
        if self.values:
            return self.values.pop(0)
        return self.default


@fixture
def sleep_mock() -> MagicMock:
    """Replacement for time.sleep."""
    return MagicMock()


@fixture
def validator(sleep_mock: MagicMock) -> CoordinateValidator:
    """Validator with the New Orleans profile, seeded and without real sleeps."""
    return CoordinateValidator(
        rng=random.Random(42), sleep=sleep_mock, backoff_seconds=1.1
    )


@fixture
def db_session() -> Generator[Session, None, None]:
    """In-memory SQLite session with the restaurant table created."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    factory = create_session_factory(engine=engine)
    session = factory()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@fixture
def sequence_random() -> type[SequenceRandom]:
    """Factory for deterministic random sources."""
    return SequenceRandom
