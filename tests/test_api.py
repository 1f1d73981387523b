import pytest

import rollcall
from rollcall import create_app
from rollcall.modules.exceptions import StoreError
from rollcall.modules.qr_generator import QRGenerator


def _register(client, roll="A1", name="Jane Doe"):
    return client.post("/api/students", json={"roll": roll, "name": name})


def test_index_redirects_to_students(client):
    res = client.get("/")
    assert res.status_code == 302
    assert res.headers["Location"].endswith("/api/students")


def test_mark_success(client, clock):
    _register(client)

    res = client.post("/api/mark", json={"roll": " A1 "})

    assert res.status_code == 200
    assert res.get_json() == {
        "ok": True,
        "student": {"name": "Jane Doe", "roll": "A1"},
        "timestamp": "2024-01-01T09:00:00.000Z",
    }


def test_mark_accepts_form_body(client):
    _register(client)

    res = client.post("/api/mark", data={"roll": "A1"})

    assert res.status_code == 200
    assert res.get_json()["ok"] is True


@pytest.mark.parametrize("body", [{}, {"roll": ""}, {"roll": "   "}])
def test_mark_missing_roll(client, app, body):
    res = client.post("/api/mark", json=body)

    assert res.status_code == 400
    assert res.get_json()["ok"] is False
    assert app.extensions["rollcall"].ledger.count() == 0


def test_mark_unknown_roll(client, app):
    res = client.post("/api/mark", json={"roll": "unregistered-roll"})

    assert res.status_code == 404
    assert res.get_json()["ok"] is False
    assert app.extensions["rollcall"].ledger.count() == 0


def test_mark_store_failure_is_generic(client, app, monkeypatch):
    _register(client)

    def broken_append(student_id, occurred_at):
        raise StoreError("database is locked")

    monkeypatch.setattr(app.extensions["rollcall"].ledger, "append", broken_append)

    res = client.post("/api/mark", json={"roll": "A1"})

    assert res.status_code == 500
    assert res.get_json() == {"ok": False, "error": "db error"}


def test_duplicate_window_returns_conflict(tmp_path, encoder, clock):
    app = create_app(
        "testing",
        image_encoder=encoder,
        clock=clock,
        DATABASE_PATH=str(tmp_path / "window.db"),
        QR_CODES_FOLDER=str(tmp_path / "qrs"),
        DUPLICATE_SCAN_WINDOW_SECONDS=60,
    )
    client = app.test_client()
    _register(client)

    assert client.post("/api/mark", json={"roll": "A1"}).status_code == 200
    assert client.post("/api/mark", json={"roll": "A1"}).status_code == 409


def test_invalid_config_is_rejected(tmp_path):
    with pytest.raises(RuntimeError):
        create_app("testing", DATABASE_PATH=str(tmp_path / "x.db"), QR_CODE_ERROR_CORRECT="Z")


def test_student_crud(client, encoder):
    res = _register(client, "B2", "John Roe")
    assert res.status_code == 200
    assert res.get_json()["student"]["roll"] == "B2"
    _register(client, "A1", "Jane Doe")

    # Second registration keeps the original name
    again = _register(client, "A1", "Other Name")
    assert again.get_json()["student"]["name"] == "Jane Doe"

    listing = client.get("/api/students").get_json()["students"]
    assert [s["roll"] for s in listing] == ["A1", "B2"]

    renamed = client.patch("/api/students/A1", json={"name": "Jane Smith"})
    assert renamed.status_code == 200
    assert renamed.get_json()["student"]["name"] == "Jane Smith"

    assert client.delete("/api/students/B2").status_code == 200
    assert client.delete("/api/students/B2").status_code == 404
    assert client.patch("/api/students/B2", json={"name": "x"}).status_code == 404
    assert "B2" in encoder.rolls


def test_register_validation(client):
    res = client.post("/api/students", json={"roll": "A1"})

    assert res.status_code == 400
    assert res.get_json()["ok"] is False


def test_recent_attendance_and_export(client, clock):
    _register(client, "A1", "Jane Doe")
    _register(client, "B2", "John Roe")
    client.post("/api/mark", json={"roll": "A1"})
    clock.advance(minutes=1)
    client.post("/api/mark", json={"roll": "B2"})
    clock.advance(minutes=1)
    client.post("/api/mark", json={"roll": "A1"})

    records = client.get("/api/attendance?limit=2").get_json()["records"]
    assert [r["timestamp"] for r in records] == [
        "2024-01-01T09:02:00.000Z",
        "2024-01-01T09:01:00.000Z",
    ]
    assert len(client.get("/api/attendance").get_json()["records"]) == 3
    assert client.get("/api/attendance?limit=-1").status_code == 400

    res = client.get("/export.csv")
    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    assert "attendance_export.csv" in res.headers["Content-Disposition"]
    assert res.get_data(as_text=True) == (
        "id,roll,name,timestamp,date\n"
        '3,A1,"Jane Doe",2024-01-01T09:02:00.000Z,2024-01-01\n'
        '2,B2,"John Roe",2024-01-01T09:01:00.000Z,2024-01-01\n'
        '1,A1,"Jane Doe",2024-01-01T09:00:00.000Z,2024-01-01\n'
    )


def test_qr_endpoint_serves_png(tmp_path, clock):
    generator = QRGenerator(str(tmp_path / "qrs"))
    app = create_app(
        "testing",
        image_encoder=generator,
        clock=clock,
        DATABASE_PATH=str(tmp_path / "qr.db"),
        QR_CODES_FOLDER=str(tmp_path / "qrs"),
    )
    client = app.test_client()
    _register(client)

    res = client.get("/api/students/A1/qr")

    assert res.status_code == 200
    assert res.mimetype == "image/png"
    assert res.data.startswith(b"\x89PNG")
    assert client.get("/api/students/Z9/qr").status_code == 404


def test_qr_endpoint_missing_image(client):
    _register(client)

    assert client.get("/api/students/A1/qr").status_code == 404


def test_default_qr_worker_is_shut_down_at_exit(tmp_path, monkeypatch):
    registered = []
    monkeypatch.setattr(rollcall.atexit, "register", registered.append)

    app = create_app(
        "testing",
        DATABASE_PATH=str(tmp_path / "exit.db"),
        QR_CODES_FOLDER=str(tmp_path / "qrs"),
    )
    encoder = app.extensions["rollcall"].qr_encoder

    assert registered == [encoder.shutdown]
    encoder.shutdown()
    assert not encoder.worker.is_alive()


def test_injected_encoder_is_not_registered_at_exit(tmp_path, encoder, monkeypatch):
    registered = []
    monkeypatch.setattr(rollcall.atexit, "register", registered.append)

    create_app(
        "testing",
        image_encoder=encoder,
        DATABASE_PATH=str(tmp_path / "exit.db"),
        QR_CODES_FOLDER=str(tmp_path / "qrs"),
    )

    assert registered == []
