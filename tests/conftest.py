"""Shared fixtures: a file-backed SQLite datastore and fake channel senders."""

from __future__ import annotations

from typing import Any, Dict

import pytest

from redgarden.config import Settings
from redgarden.core.database import create_db_engine, init_db
from redgarden.core.datastore import Datastore
from redgarden.errors import ChannelError, PushEndpointGone
from redgarden.integrations.senders import ChannelSenders


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'redgarden.db'}",
        supabase_url="https://project.supabase.co",
        supabase_service_key="service-key",
        vapid_public_key=None,
        vapid_private_key=None,
        sendgrid_api_key=None,
        admin_email=None,
        twilio_account_sid=None,
        twilio_auth_token=None,
        twilio_from=None,
        admin_phone=None,
        telegram_bot_token=None,
        telegram_chat_id=None,
        github_token=None,
        github_repo_owner=None,
        github_repo_name=None,
        worker_id="test-worker",
        notification_max_attempts=None,
        invoice_max_attempts=None,
    )


@pytest.fixture
def datastore(settings: Settings) -> Datastore:
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    yield Datastore(engine)
    engine.dispose()


class FakePushSender:
    def __init__(self, gone=(), broken=()) -> None:
        self.gone = set(gone)
        self.broken = set(broken)
        self.sent: list[tuple[str, Dict[str, str]]] = []

    async def send(self, subscription: Dict[str, Any], message: Dict[str, str]) -> None:
        endpoint = subscription["endpoint"]
        if endpoint in self.gone:
            raise PushEndpointGone("Push endpoint gone (410)", 410)
        if endpoint in self.broken:
            raise ChannelError("Push error: 500 Internal Server Error", 500)
        self.sent.append((endpoint, message))


class FakeEmailSender:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    async def send(self, subject: str, text: str) -> None:
        if self.fail:
            raise ChannelError("SendGrid error: Unauthorized", 401)
        self.sent.append((subject, text))


class FakeTextSender:
    def __init__(self, name: str, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.sent: list[str] = []

    async def send(self, text: str) -> None:
        if self.fail:
            raise ChannelError(f"{self.name} error: Service Unavailable", 503)
        self.sent.append(text)


@pytest.fixture
def make_senders():
    def _make(*, gone=(), broken=(), email_fails=False, sms_fails=False, telegram_fails=False) -> ChannelSenders:
        return ChannelSenders(
            push=FakePushSender(gone=gone, broken=broken),
            email=FakeEmailSender(fail=email_fails),
            sms=FakeTextSender("Twilio", fail=sms_fails),
            telegram=FakeTextSender("Telegram", fail=telegram_fails),
        )

    return _make
