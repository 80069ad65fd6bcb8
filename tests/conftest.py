import pytest
from datetime import datetime, timedelta, timezone

from userlogs.app import create_app
from userlogs.archive import ArchiveBuilder
from userlogs.backend import FileLogBackend
from userlogs.config import Config
from userlogs.rate_limiter import RateLimiter
from userlogs.service import LogService
from userlogs.store import IdentityStore


class FakeClock:
    """Controllable UTC clock; advance() moves it forward."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 7, 13, 8, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return Config(log_dir=str(tmp_path / "user_logs"))


@pytest.fixture
def backend(config):
    return FileLogBackend(config.log_dir, config.log_suffix)


@pytest.fixture
def store(backend):
    return IdentityStore(backend)


@pytest.fixture
def service(store, clock):
    return LogService(
        store,
        RateLimiter(enabled=False),
        ArchiveBuilder(store, time_func=clock),
        time_func=clock,
    )


@pytest.fixture
def app(config):
    """Create a Flask test app backed by a temp log directory."""
    application = create_app(config)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()
