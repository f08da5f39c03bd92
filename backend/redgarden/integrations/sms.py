from __future__ import annotations

import logging

import httpx

from ..config import Settings
from ..errors import ChannelError, ChannelNotConfigured

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioSmsSender:
    """Sends SMS through the Twilio Messages REST resource."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self.account_sid = settings.twilio_account_sid
        self.auth_token = settings.twilio_auth_token
        self.from_number = settings.twilio_from
        self.to_number = settings.admin_phone
        self.client = client

    async def send(self, text: str) -> None:
        if not (self.account_sid and self.auth_token and self.from_number and self.to_number):
            raise ChannelNotConfigured("Twilio not configured")

        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        try:
            resp = await self.client.post(
                url,
                data={"To": self.to_number, "From": self.from_number, "Body": text},
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.RequestError as exc:
            raise ChannelError(f"Twilio error: {type(exc).__name__}: {exc}") from exc

        if resp.is_error:
            raise ChannelError(f"Twilio error: {resp.status_code} {resp.reason_phrase}", resp.status_code)
        logger.debug("sms sent to %s", self.to_number)
