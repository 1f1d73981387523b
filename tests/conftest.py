from datetime import datetime, timedelta, timezone

import pytest

from rollcall import create_app
from rollcall.modules.attendance_ledger import AttendanceLedger
from rollcall.modules.database_manager import DatabaseManager
from rollcall.modules.exceptions import ImageEncodeError
from rollcall.modules.report_generator import ReportGenerator
from rollcall.modules.scan_service import ScanService
from rollcall.modules.student_registry import StudentRegistry


class FixedClock:
    """Clock returning a controllable aware UTC instant."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingEncoder:
    """Image encoder that remembers the rolls it was asked to encode."""

    def __init__(self, fail=False):
        self.fail = fail
        self.rolls = []

    def encode(self, roll):
        self.rolls.append(roll)
        if self.fail:
            raise ImageEncodeError(f"cannot encode {roll}")

    def path_for(self, roll):
        raise ImageEncodeError("no images in tests")


@pytest.fixture()
def clock():
    return FixedClock(datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture()
def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "attendance_test.db"))
    yield manager
    manager.close_all_connections()


@pytest.fixture()
def encoder():
    return RecordingEncoder()


@pytest.fixture()
def failing_encoder():
    return RecordingEncoder(fail=True)


@pytest.fixture()
def registry(db, encoder):
    return StudentRegistry(db, image_encoder=encoder)


@pytest.fixture()
def ledger(db):
    return AttendanceLedger(db)


@pytest.fixture()
def scanner(registry, ledger, clock):
    return ScanService(registry, ledger, clock=clock)


@pytest.fixture()
def reports(ledger):
    return ReportGenerator(ledger)


@pytest.fixture()
def app(tmp_path, encoder, clock):
    app = create_app(
        'testing',
        image_encoder=encoder,
        clock=clock,
        DATABASE_PATH=str(tmp_path / "api_test.db"),
        QR_CODES_FOLDER=str(tmp_path / "qrs"),
    )
    yield app
    app.extensions['rollcall'].db.close_all_connections()


@pytest.fixture()
def client(app):
    return app.test_client()
