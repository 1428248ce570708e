import requests

from ussdloan import config
from ussdloan.service import Service

MSISDN = "233241234567"


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.text = str(body)
        self._body = body

    def json(self):
        return self._body


def test_send_message_posts_to_gateway(monkeypatch):
    calls = []

    def fake_post(url, json, headers, timeout):
        calls.append((url, json, headers, timeout))
        return FakeResponse(200, {"status": "queued"})

    monkeypatch.setattr(config, "SMS_URL", "http://sms.example/send")
    monkeypatch.setattr(config, "SENDER_ID", "SIKA")
    monkeypatch.setattr(config, "ACCESS_KEY", "secret")
    monkeypatch.setattr(requests, "post", fake_post)

    assert Service.send_message(MSISDN, "hello") == {"status": "queued"}
    [(url, payload, headers, timeout)] = calls
    assert url == "http://sms.example/send"
    assert payload["SenderId"] == "SIKA"
    assert payload["MessageParameters"] == [{"Number": MSISDN, "Text": "hello"}]
    assert headers["accesskey"] == "secret"
    assert timeout == config.SMS_TIMEOUT_SECONDS


def test_gateway_errors_are_returned(monkeypatch):
    def refused(**kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(config, "SMS_URL", "http://sms.example/send")
    monkeypatch.setattr(requests, "post", refused)
    assert "refused" in Service.send_message(MSISDN, "hello")["error"]

    monkeypatch.setattr(requests, "post", lambda **kwargs: FakeResponse(401, "bad key"))
    assert Service.send_message(MSISDN, "hello") == {"error": "bad key"}


def test_unconfigured_gateway_is_skipped(monkeypatch):
    monkeypatch.setattr(config, "SMS_URL", None)

    def unexpected(**kwargs):
        raise AssertionError("gateway should not be called")

    monkeypatch.setattr(requests, "post", unexpected)
    assert Service.send_message(MSISDN, "hello") == {"error": "SMS gateway not configured"}
