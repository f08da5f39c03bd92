"""Web Push delivery to registered admin browsers (VAPID)."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from py_vapid import Vapid01
from py_vapid.utils import b64urlencode
from pywebpush import WebPushException, webpush

from ..config import Settings
from ..errors import ChannelError, ChannelNotConfigured, PushEndpointGone

logger = logging.getLogger(__name__)

GONE_STATUSES = (404, 410)

_STATUS_IN_MESSAGE = re.compile(r"Push failed:\s*(\d{3})")


def _status_from(exc: WebPushException) -> Optional[int]:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    match = _STATUS_IN_MESSAGE.search(str(exc))
    return int(match.group(1)) if match else None


class WebPushSender:
    def __init__(self, settings: Settings) -> None:
        self.private_key = settings.vapid_private_key
        self.public_key = settings.vapid_public_key
        self.subject = settings.push_subject
        self.timeout = settings.http_timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.private_key and self.public_key)

    def _send_blocking(self, subscription: Dict[str, Any], data: str) -> None:
        webpush(
            subscription_info=subscription,
            data=data,
            vapid_private_key=self.private_key,
            vapid_claims={"sub": self.subject},
            timeout=self.timeout,
        )

    async def send(self, subscription: Dict[str, Any], message: Dict[str, str]) -> None:
        """
        Deliver one message to one subscription.
        Raises PushEndpointGone when the endpoint answers 404/410.
        """
        if not self.configured:
            raise ChannelNotConfigured("VAPID keys not configured")

        try:
            await asyncio.to_thread(self._send_blocking, subscription, json.dumps(message))
        except WebPushException as exc:
            status = _status_from(exc)
            if status in GONE_STATUSES:
                raise PushEndpointGone(f"Push endpoint gone ({status})", status) from exc
            raise ChannelError(f"Push error: {exc}", status) from exc


def generate_vapid_keys() -> Dict[str, str]:
    """New key pair encoded the way browsers expect applicationServerKey."""
    vapid = Vapid01()
    vapid.generate_keys()
    public_raw = vapid.public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    private_raw = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    return {
        "publicKey": b64urlencode(public_raw),
        "privateKey": b64urlencode(private_raw),
    }
