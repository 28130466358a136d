from __future__ import annotations

from types import SimpleNamespace

import pytest

from medrx.core.notifications import (
    EmailClient,
    NotificationConfigError,
    NotificationError,
    NotificationService,
    SmsGateway,
    SmtpProbe,
    SmtpTarget,
    TemplateNotFoundError,
    build_subscription_message,
    clean_phone_number,
    render_template,
    translate_sms_code,
)


class _Resp:
    def __init__(self, status_code: int = 200, body: dict | None = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body or {}
        self.text = text

    def json(self) -> dict:
        return self._body


def test_render_template_substitutes_known_keys_only() -> None:
    rendered = render_template(
        "Dear {{patient_name}}, see {{ doctor_name }} on {{date}}",
        {"patient_name": "Rahim", "doctor_name": "Dr. Karim"},
    )
    assert rendered == "Dear Rahim, see Dr. Karim on {{date}}"


def test_translate_sms_code() -> None:
    assert translate_sms_code(202) == "SMS Submitted Successfully"
    assert translate_sms_code(1007) == "Balance Insufficient"
    assert translate_sms_code(9999) == "Unknown error occurred"
    assert translate_sms_code(None) == "Unknown error occurred"


def test_clean_phone_number_strips_formatting() -> None:
    assert clean_phone_number("+880 1711-000000") == "8801711000000"


def test_subscription_messages() -> None:
    approved = build_subscription_message("subscription_approved", "Dr. Nila")
    assert approved.subject == "Your Subscription is Active!"
    assert "Hi Dr. Nila" in approved.body

    trial = build_subscription_message("trial_ending", None)
    assert "Hi there" in trial.body
    assert "3 days" in trial.body

    with pytest.raises(ValueError):
        build_subscription_message("bogus", "x")


def test_email_client_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    monkeypatch.setattr(notifications.settings, "resend_api_key", "")
    with pytest.raises(NotificationConfigError):
        EmailClient().send(to="a@example.com", subject="s", html="<p>x</p>")


def test_email_client_posts_to_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    monkeypatch.setattr(notifications.settings, "resend_api_key", "re_test")
    called: dict[str, object] = {}

    def _post(url: str, headers: dict, json: dict, timeout: int):  # noqa: A002
        called.update(url=url, headers=headers, json=json, timeout=timeout)
        return _Resp(body={"id": "msg_1"})

    monkeypatch.setattr(notifications.requests, "post", _post)

    message_id = EmailClient().send(to="a@example.com", subject="Hello", html="<p>x</p>")

    assert message_id == "msg_1"
    assert called["headers"] == {"Authorization": "Bearer re_test"}
    assert called["json"]["to"] == ["a@example.com"]


def test_email_client_surfaces_provider_error(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    monkeypatch.setattr(notifications.settings, "resend_api_key", "re_test")
    monkeypatch.setattr(
        notifications.requests,
        "post",
        lambda *a, **k: _Resp(status_code=422, body={"message": "invalid from"}),
    )

    with pytest.raises(NotificationError, match="invalid from") as exc:
        EmailClient().send(to="a@example.com", subject="Hello", html="x")
    assert exc.value.code == 422


def test_sms_gateway_success_and_error_codes(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    monkeypatch.setattr(notifications.settings, "bulksms_api_key", "key")
    monkeypatch.setattr(notifications.settings, "bulksms_sender_id", "8809600")
    params_seen: list[dict] = []

    def _get(url: str, params: dict, timeout: int):
        params_seen.append(params)
        return _Resp(text=" 202 ")

    monkeypatch.setattr(notifications.requests, "get", _get)
    assert SmsGateway().send(phone_number="+880 1711-000000", message="hi") == 202
    assert params_seen[0]["number"] == "8801711000000"

    monkeypatch.setattr(notifications.requests, "get", lambda *a, **k: _Resp(text="1007"))
    with pytest.raises(NotificationError, match="Balance Insufficient") as exc:
        SmsGateway().send(phone_number="01711000000", message="hi")
    assert exc.value.code == 1007

    monkeypatch.setattr(notifications.requests, "get", lambda *a, **k: _Resp(text="<html>oops"))
    with pytest.raises(NotificationError, match="Unknown error occurred") as exc:
        SmsGateway().send(phone_number="01711000000", message="hi")
    assert exc.value.code is None


def test_sms_gateway_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    monkeypatch.setattr(notifications.settings, "bulksms_api_key", "")
    with pytest.raises(NotificationConfigError):
        SmsGateway().send(phone_number="01711000000", message="hi")


class _FakeSmtp:
    instances: list["_FakeSmtp"] = []

    def __init__(self, host: str, port: int, timeout: int) -> None:
        self.host = host
        self.port = port
        self.calls: list[str] = []
        self.sent: list[object] = []
        _FakeSmtp.instances.append(self)

    def __enter__(self) -> "_FakeSmtp":
        return self

    def __exit__(self, *exc: object) -> None:
        self.calls.append("quit")

    def starttls(self) -> None:
        self.calls.append("starttls")

    def login(self, username: str, password: str) -> None:
        self.calls.append(f"login:{username}")

    def noop(self) -> None:
        self.calls.append("noop")

    def send_message(self, message: object) -> None:
        self.sent.append(message)


def test_smtp_probe_starttls_and_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    _FakeSmtp.instances.clear()
    monkeypatch.setattr(notifications.smtplib, "SMTP", _FakeSmtp)

    SmtpProbe(SmtpTarget(host="smtp.test", port=587, from_email="a@test", username="u", password="p")).check()

    server = _FakeSmtp.instances[0]
    assert server.calls == ["starttls", "login:u", "noop", "quit"]


def test_smtp_probe_ssl_port_sends_message(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    _FakeSmtp.instances.clear()
    monkeypatch.setattr(notifications.smtplib, "SMTP_SSL", _FakeSmtp)

    SmtpProbe(SmtpTarget(host="smtp.test", port=465, from_email="a@test")).check(
        to="b@test", subject="Hello", body="Body"
    )

    server = _FakeSmtp.instances[0]
    assert "starttls" not in server.calls
    assert server.sent[0]["To"] == "b@test"
    assert server.sent[0]["Subject"] == "Hello"


def test_smtp_probe_wraps_connection_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core import notifications

    def _refuse(*args: object, **kwargs: object) -> None:
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(notifications.smtplib, "SMTP", _refuse)
    with pytest.raises(NotificationError, match="SMTP check failed"):
        SmtpProbe(SmtpTarget(host="smtp.test", port=587, from_email="a@test")).check()


class _Session:
    def __init__(self, values: list) -> None:
        self._values = list(values)

    async def scalar(self, stmt):  # noqa: ANN001
        return self._values.pop(0) if self._values else None


class _EmailClient:
    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    def send(self, *, to: str, subject: str, html: str) -> str:
        self.sent.append({"to": to, "subject": subject, "html": html})
        return "msg_42"


@pytest.mark.asyncio
async def test_notification_service_skips_disabled_events() -> None:
    email = _EmailClient()
    service = NotificationService(_Session([SimpleNamespace(is_enabled=False)]), email_client=email)

    result = await service.send_event_email(
        event_type="appointment_created",
        recipient_email="p@example.com",
        template_data={},
    )

    assert result.sent is False
    assert email.sent == []


@pytest.mark.asyncio
async def test_notification_service_renders_active_template() -> None:
    email = _EmailClient()
    template = SimpleNamespace(subject="Visit on {{date}}", body_html="<p>Hi {{patient_name}}</p>")
    service = NotificationService(
        _Session([SimpleNamespace(is_enabled=True), template]),
        email_client=email,
    )

    result = await service.send_event_email(
        event_type="appointment_approved",
        recipient_email="p@example.com",
        template_data={"date": "2026-03-02", "patient_name": "Rahim"},
    )

    assert result.sent is True
    assert result.message_id == "msg_42"
    assert email.sent == [
        {"to": "p@example.com", "subject": "Visit on 2026-03-02", "html": "<p>Hi Rahim</p>"}
    ]


@pytest.mark.asyncio
async def test_notification_service_missing_template() -> None:
    service = NotificationService(_Session([SimpleNamespace(is_enabled=True), None]), email_client=_EmailClient())

    with pytest.raises(TemplateNotFoundError):
        await service.send_event_email(
            event_type="prescription_created",
            recipient_email="p@example.com",
            template_data={},
        )


@pytest.mark.asyncio
async def test_notification_service_unknown_event_has_no_template() -> None:
    service = NotificationService(_Session([SimpleNamespace(is_enabled=True)]), email_client=_EmailClient())

    with pytest.raises(TemplateNotFoundError):
        await service.send_event_email(event_type="mystery", recipient_email="p@example.com", template_data={})
