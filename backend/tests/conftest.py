from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from event_checkin.core.config import Settings
from event_checkin.main import create_app
from event_checkin.services.notifier import MemoryMailer
from event_checkin.services.row_store import InMemoryRowStore

STAFF_PASSWORD = "staff-secret-123"
TOKEN_SECRET = "token-secret-456"


class FrozenClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'checkin_test.db'}",
        STORE_BACKEND="sql",
        STAFF_PASSWORD=STAFF_PASSWORD,
        TOKEN_SECRET=TOKEN_SECRET,
        OTP_TTL_SECONDS=600,
        SMTP_HOST=None,
        LOG_FILE=None,
    )


@pytest.fixture()
def mailer():
    return MemoryMailer()


@pytest.fixture()
def memory_store():
    return InMemoryRowStore({"Control": [["SystemOpen", "Y"]]})


@pytest.fixture()
def app(settings, mailer):
    return create_app(settings, mailer=mailer)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def services(app):
    return app.state.services
