"""Transactional email to the venue admin through SendGrid."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from ..config import Settings
from ..errors import ChannelError, ChannelNotConfigured

logger = logging.getLogger(__name__)


def _error_details(body: Any) -> str | None:
    """Return a readable description of a SendGrid error payload."""

    if body in (None, b"", ""):
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return body.strip() or None

    if isinstance(body, dict) and isinstance(body.get("errors"), list):
        messages = [
            str(item["message"])
            for item in body["errors"]
            if isinstance(item, dict) and item.get("message")
        ]
        if messages:
            return "; ".join(messages)
    return json.dumps(body, default=str)


class SendGridEmailSender:
    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.sendgrid_api_key
        self.admin_email = settings.admin_email
        self.timeout = settings.http_timeout_seconds

    async def send(self, subject: str, text: str) -> None:
        if not (self.api_key and self.admin_email):
            raise ChannelNotConfigured("SendGrid or ADMIN_EMAIL not configured")

        message = Mail(
            from_email=self.admin_email,
            to_emails=self.admin_email,
            subject=subject,
            plain_text_content=text,
        )
        client = SendGridAPIClient(self.api_key)

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(client.send, message), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise ChannelError("SendGrid error: request timed out") from exc
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            details = _error_details(getattr(exc, "body", None)) or str(exc)
            raise ChannelError(f"SendGrid error: {details}", status_code) from exc

        status_code = getattr(response, "status_code", None)
        if not isinstance(status_code, int) or not 200 <= status_code < 300:
            details = _error_details(getattr(response, "body", None)) or "unexpected response"
            raise ChannelError(f"SendGrid error: {details}", status_code)
        logger.debug("email sent to %s (%s)", self.admin_email, status_code)
