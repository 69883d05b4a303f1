"""External adapters: httpx webhook client, SMTP mailer and Redis broadcast."""

import json
from unittest.mock import AsyncMock

import aiosmtplib
import httpx
import pytest

from storeflow.application.dtos.workflow import MailMessage
from storeflow.application.services.action_interpreter import ActionInterpreter
from storeflow.core.config import Settings
from storeflow.domain.entities.workflow import WebhookAction
from storeflow.domain.enums import ErrorKind
from storeflow.domain.exceptions import TransientError, WebhookFailedError
from storeflow.infrastructure.external.email import smtp_mailer
from storeflow.infrastructure.external.email.smtp_mailer import SmtpMailer, build_mailer
from storeflow.infrastructure.external.webhook.httpx_client import HttpxWebhookClient
from storeflow.infrastructure.messaging.redis_broadcast import RedisBroadcastChannel


def _webhook_client(handler) -> HttpxWebhookClient:
    return HttpxWebhookClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_webhook_sends_method_headers_and_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, text="created")

    client = _webhook_client(handler)
    response = await client.request(
        "POST", "https://hooks.example/x", {"X-Key": "k"}, '{"a": 1}'
    )
    await client.aclose()

    assert (response.status_code, response.body) == (201, "created")
    assert seen[0].method == "POST"
    assert seen[0].headers["X-Key"] == "k"
    assert json.loads(seen[0].content) == {"a": 1}


async def test_webhook_non_success_raises() -> None:
    client = _webhook_client(lambda request: httpx.Response(404))
    with pytest.raises(WebhookFailedError) as exc_info:
        await client.request("GET", "https://hooks.example/missing", {}, None)
    assert exc_info.value.status == 404


async def test_interpreter_reports_client_status_failure(entity_store, clock, ctx) -> None:
    client = _webhook_client(lambda request: httpx.Response(500))
    interpreter = ActionInterpreter(entity_store=entity_store, webhook_client=client, clock=clock)

    outcome = await interpreter.execute(WebhookAction(url="https://hooks.example/down"), {}, ctx)
    await client.aclose()

    assert outcome.error.kind == ErrorKind.TRANSIENT
    assert outcome.error.message == "Webhook failed with status 500"


async def test_webhook_timeout_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransientError) as exc_info:
        await _webhook_client(handler).request("POST", "https://hooks.example", {}, None)
    assert exc_info.value.error_code == "WEBHOOK_TIMEOUT"


async def test_webhook_connection_error_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransientError) as exc_info:
        await _webhook_client(handler).request("POST", "https://hooks.example", {}, None)
    assert exc_info.value.error_code == "WEBHOOK_REQUEST_FAILED"


async def test_smtp_mailer_sends_html(monkeypatch) -> None:
    send = AsyncMock()
    monkeypatch.setattr(smtp_mailer.aiosmtplib, "send", send)
    mailer = SmtpMailer("smtp.example", 465, "bot@example.com", "pw", secure=True)

    await mailer.send(MailMessage(to=("a@x.io", "b@x.io"), subject="Hi", html="<b>yo</b>"))

    email = send.await_args.args[0]
    assert email["To"] == "a@x.io, b@x.io"
    assert email["From"] == "bot@example.com"
    assert email.get_content_subtype() == "html"
    assert send.await_args.kwargs["use_tls"] is True
    assert send.await_args.kwargs["hostname"] == "smtp.example"


async def test_smtp_failure_is_transient(monkeypatch) -> None:
    monkeypatch.setattr(
        smtp_mailer.aiosmtplib, "send", AsyncMock(side_effect=aiosmtplib.SMTPException("nope"))
    )
    mailer = SmtpMailer("smtp.example", default_sender="bot@example.com")

    with pytest.raises(TransientError) as exc_info:
        await mailer.send(MailMessage(to=("a@x.io",), subject="s", html="h"))
    assert exc_info.value.error_code == "MAIL_DELIVERY_FAILED"


def test_build_mailer_requires_host() -> None:
    assert build_mailer(Settings(database_url="sqlite+aiosqlite://", _env_file=None)) is None
    mailer = build_mailer(
        Settings(
            database_url="sqlite+aiosqlite://",
            mail_host="smtp.example",
            mail_user="bot@example.com",
            _env_file=None,
        )
    )
    assert mailer is not None and mailer.default_sender == "bot@example.com"


async def test_redis_broadcast_publishes_envelope() -> None:
    redis_client = AsyncMock()
    channel = RedisBroadcastChannel(redis_client=redis_client)

    await channel.emit("user:u-1", "notification", {"title": "t"})

    name, message = redis_client.publish.await_args.args
    assert name == "notifications:user:u-1"
    assert json.loads(message) == {
        "room": "user:u-1",
        "event": "notification",
        "payload": {"title": "t"},
    }


async def test_redis_publish_failure_is_logged_not_raised() -> None:
    redis_client = AsyncMock()
    redis_client.publish.side_effect = ConnectionError("gone")
    channel = RedisBroadcastChannel(redis_client=redis_client)

    assert await channel.publish("user:u-1", "notification", {}) is False


async def test_redis_unavailable_skips_publish() -> None:
    channel = RedisBroadcastChannel()
    assert not channel.is_available()
    assert await channel.publish("user:u-1", "notification", {}) is False
