from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

import httpx

from ..config import Settings
from .email import SendGridEmailSender
from .push import WebPushSender
from .sms import TwilioSmsSender
from .telegram_bot import TelegramBotSender


class PushSender(Protocol):
    async def send(self, subscription: Dict[str, Any], message: Dict[str, str]) -> None: ...


class EmailSender(Protocol):
    async def send(self, subject: str, text: str) -> None: ...


class TextSender(Protocol):
    async def send(self, text: str) -> None: ...


@dataclass
class ChannelSenders:
    push: PushSender
    email: EmailSender
    sms: TextSender
    telegram: TextSender


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    timeout = settings.http_timeout_seconds
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=timeout),
        transport=httpx.AsyncHTTPTransport(retries=1),
    )


def build_senders(settings: Settings, client: httpx.AsyncClient) -> ChannelSenders:
    return ChannelSenders(
        push=WebPushSender(settings),
        email=SendGridEmailSender(settings),
        sms=TwilioSmsSender(settings, client),
        telegram=TelegramBotSender(settings, client),
    )
