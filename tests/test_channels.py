import requests
import pytest

from app.channels import get_adapter
from app.channels.sms import (
    LoggingSender,
    TwilioRestSender,
    TwilioSmsAdapter,
    build_sender,
    compute_signature,
    split_message,
)
from app.config import TwilioCredentials

CREDS = TwilioCredentials(account_sid="AC123", auth_token="secret", from_number="+15559990000")


class FakeResponse:
    def __init__(self, status_code=201, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def test_registry_returns_sms_adapter():
    assert get_adapter("SMS") is TwilioSmsAdapter
    with pytest.raises(KeyError):
        get_adapter("fax")


def test_split_prefers_newlines_then_spaces():
    assert split_message("short") == ["short"]
    text = "a" * 30 + "\n" + "b" * 30
    assert split_message(text, limit=40) == ["a" * 30, "b" * 30]
    words = " ".join(["word"] * 20)
    parts = split_message(words, limit=25)
    assert all(len(p) <= 25 for p in parts)
    assert " ".join(parts) == words


def test_split_hard_cuts_unbroken_text():
    assert split_message("x" * 50, limit=20) == ["x" * 20, "x" * 20, "x" * 10]


def test_signature_roundtrip():
    adapter = TwilioSmsAdapter()
    payload = {"From": "+15550000002", "Body": "yes"}
    url = "https://sms.example.org/api/sms/webhook"
    signature = compute_signature("secret", url, payload)
    config = {"auth_token": "secret"}
    assert adapter.verify_signature(url, payload, {"X-Twilio-Signature": signature}, config)
    assert not adapter.verify_signature(url, payload, {"X-Twilio-Signature": "x"}, config)
    assert not adapter.verify_signature(url, payload, {}, config)
    assert adapter.verify_signature(url, payload, {}, {"auth_token": None})


def test_parse_incoming():
    adapter = TwilioSmsAdapter()
    [message] = adapter.parse_incoming(
        {"From": "+15550000002", "To": "+15559990000", "Body": "  yes  ", "MessageSid": "SM1"}, {}, {}
    )
    assert message.sender == "+15550000002"
    assert message.text == "yes"
    assert message.external_id == "SM1"
    assert list(adapter.parse_incoming({"Body": "hi"}, {}, {})) == []


def test_build_reply_escapes_and_splits():
    body, media_type = TwilioSmsAdapter().build_reply(["a < b & c"])
    assert media_type == "application/xml"
    assert "<Message>a &lt; b &amp; c</Message>" in body


def test_rest_sender_success():
    session = FakeSession(FakeResponse(201, {"sid": "SM9"}))
    result = TwilioRestSender(CREDS, session=session).send("5550000002", "hello")
    assert result.ok and result.external_id == "SM9"
    url, kwargs = session.calls[0]
    assert url.endswith("/Accounts/AC123/Messages.json")
    assert kwargs["data"] == {"From": "+15559990000", "To": "+15550000002", "Body": "hello"}
    assert kwargs["auth"] == ("AC123", "secret")


def test_rest_sender_http_error():
    session = FakeSession(FakeResponse(400, text="invalid number"))
    result = TwilioRestSender(CREDS, session=session).send("5550000002", "hello")
    assert not result.ok
    assert result.error == "HTTP 400: invalid number"


def test_rest_sender_network_error():
    session = FakeSession(error=requests.ConnectionError("down"))
    result = TwilioRestSender(CREDS, session=session).send("5550000002", "hello")
    assert not result.ok
    assert "down" in result.error


def test_rest_sender_rejects_incomplete_credentials():
    with pytest.raises(ValueError):
        TwilioRestSender(TwilioCredentials(account_sid="AC1"))


def test_build_sender():
    assert isinstance(build_sender(TwilioCredentials()), LoggingSender)
    assert isinstance(build_sender(CREDS), TwilioRestSender)
    assert LoggingSender().send("5550000002", "hi").ok
