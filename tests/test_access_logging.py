import json
import logging

from fastapi import FastAPI, Request
from starlette.testclient import TestClient

from app.app_logging import _install_access_logging


def _create_app() -> FastAPI:
    app = FastAPI()

    @app.post("/echo")
    async def echo(request: Request):
        return {"rid": request.state.request_id}

    @app.post("/webhook")
    async def webhook(request: Request):
        form = await request.form()
        return {"body": form.get("Body")}

    @app.get("/api/health")
    async def health():  # pragma: no cover - simple
        return {"status": "ok"}

    _install_access_logging(app)
    return app


def test_access_logging_request_id_and_scrubbing(caplog, monkeypatch):
    monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
    app = _create_app()

    with (
        TestClient(app) as client,
        caplog.at_level(logging.INFO, logger="uvicorn.access"),
    ):
        resp = client.post(
            "/echo",
            json={"token": "secret", "a": 1},
            headers={"X-Request-Id": "abc", "Authorization": "Bearer secret"},
        )

        assert resp.status_code == 200
        assert resp.headers["X-Request-Id"] == "abc"
        assert resp.json() == {"rid": "abc"}

        record = caplog.records[0]
        data = json.loads(record.getMessage())
        assert data["request_id"] == "abc"
        assert data["headers"]["authorization"] == "***"
        assert data["body"]["token"] == "***"

        caplog.clear()
        client.get("/api/health")
        assert len(caplog.records) == 0


def test_form_webhook_masks_phones_and_signature(caplog, monkeypatch):
    monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
    app = _create_app()

    with (
        TestClient(app) as client,
        caplog.at_level(logging.INFO, logger="uvicorn.access"),
    ):
        resp = client.post(
            "/webhook",
            data={"From": "+15550001234", "To": "+15559998888", "Body": "yes"},
            headers={"X-Twilio-Signature": "sig"},
        )

    # The handler still sees the replayed body.
    assert resp.json() == {"body": "yes"}
    data = json.loads(caplog.records[0].getMessage())
    assert data["body"] == {"From": "***1234", "To": "***8888", "Body": "yes"}
    assert data["headers"]["x-twilio-signature"] == "***"


def test_bodies_not_logged_by_default(caplog, monkeypatch):
    monkeypatch.delenv("LOG_REQUEST_BODIES", raising=False)
    app = _create_app()
    with (
        TestClient(app) as client,
        caplog.at_level(logging.INFO, logger="uvicorn.access"),
    ):
        client.post("/webhook", data={"From": "+15550001234", "Body": "yes"})
    data = json.loads(caplog.records[0].getMessage())
    assert "body" not in data
