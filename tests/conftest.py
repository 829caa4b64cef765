"""Shared test fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from pwrmon.api.app import create_app
from pwrmon.config.settings import Settings
from pwrmon.db.engine import create_engine, create_tables, drop_tables, get_session
from pwrmon.db.repositories.device import DeviceRepository
from pwrmon.db.repositories.reading import ReadingRepository
from pwrmon.services.auth import AuthService, create_token


class FakeClock:
    """Controllable replacement for ``datetime.now``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def fail_store_on_call(monkeypatch, failing_call: int) -> None:
    """Make the Nth reading insert hit a database outage."""
    original = ReadingRepository.create
    calls = []

    def create(self, device_id, reading):
        calls.append(device_id)
        if len(calls) == failing_call:
            with self.translate_errors():
                raise OperationalError("INSERT INTO power_readings", {}, Exception("locked"))
        return original(self, device_id, reading)

    monkeypatch.setattr(ReadingRepository, "create", create)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with in-memory SQLite."""
    return Settings(
        _env_file=None,
        database_url="sqlite:///:memory:",
        jwt_secret="test-secret",
        log_level="WARNING",
    )


@pytest.fixture
def test_engine(test_settings):
    """Create test database engine with tables."""
    engine = create_engine(test_settings)
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def test_session(test_engine) -> Session:
    """Create test database session."""
    with get_session(test_engine) as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at noon on a mid-month day."""
    return FakeClock(datetime(2024, 6, 15, 12, 0, 0))


@pytest.fixture
def sample_device(test_session):
    """A committed, active device."""
    repo = DeviceRepository(test_session)
    device = repo.create("ESP32KITCHEN01", "Kitchen Meter", "Main panel", "Kitchen")
    repo.commit()
    return device


@pytest.fixture
def sample_reading() -> dict:
    """A reading inside every normal range."""
    return {
        "voltage": 230.0,
        "current": 5.2,
        "power": 1196.0,
        "energy": 12.345,
        "power_factor": 0.98,
        "frequency": 50.0,
        "temperature": 25.5,
        "humidity": 45.0,
    }


@pytest.fixture
def app(test_settings, test_engine, clock):
    """Application bound to the test engine and clock."""
    return create_app(test_settings, engine=test_engine, clock=clock)


@pytest.fixture
def client(app):
    """HTTP client running the application lifespan."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def device_headers(sample_device) -> dict:
    return {"X-API-Key": sample_device.api_key}


@pytest.fixture
def admin_user(test_session, test_settings):
    return AuthService(test_session, test_settings).register(
        "admin", "admin@example.com", "Admin1234", role="admin"
    )


@pytest.fixture
def regular_user(test_session, test_settings):
    return AuthService(test_session, test_settings).register(
        "viewer", "viewer@example.com", "Viewer1234"
    )


@pytest.fixture
def admin_headers(admin_user, test_settings) -> dict:
    return {"Authorization": f"Bearer {create_token(admin_user, test_settings)}"}


@pytest.fixture
def user_headers(regular_user, test_settings) -> dict:
    return {"Authorization": f"Bearer {create_token(regular_user, test_settings)}"}
