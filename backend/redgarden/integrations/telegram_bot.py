from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings
from ..errors import ChannelError, ChannelNotConfigured

logger = logging.getLogger(__name__)


class TelegramBotSender:
    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self.token = settings.telegram_bot_token
        self.chat_id = settings.telegram_chat_id
        self.client = client

    @property
    def base_url(self) -> str:
        return f"https://api.telegram.org/bot{self.token}"

    async def send(self, text: str, parse_mode: Optional[str] = None) -> None:
        if not (self.token and self.chat_id):
            raise ChannelNotConfigured("Telegram not configured")

        payload: Dict[str, Any] = {
            "chat_id": self.chat_id,
            "text": text,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            resp = await self.client.post(f"{self.base_url}/sendMessage", json=payload)
        except httpx.RequestError as exc:
            # never log the URL, it carries the bot token
            raise ChannelError(f"Telegram error: {type(exc).__name__}") from exc

        if resp.is_error:
            desc = ""
            try:
                desc = resp.json().get("description", "")
            except ValueError:
                desc = resp.text[:200]
            raise ChannelError(
                f"Telegram error: {resp.status_code} {desc or resp.reason_phrase}",
                resp.status_code,
            )
