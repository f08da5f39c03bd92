from __future__ import annotations

import json
import logging
from typing import Any, Dict, FrozenSet, Optional

from .datastore import Datastore

logger = logging.getLogger(__name__)

CHANNELS: tuple[str, ...] = ("push", "email", "sms", "telegram")
ALL = "all"

Payload = Optional[Dict[str, Any]]


def payload_text(payload: Any) -> str:
    """Compact JSON, the same shape a browser's JSON.stringify would produce."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def compose_text(notification_type: str, payload: Any) -> str:
    return f"[{notification_type}] {payload_text(payload)}"


def alert_title(notification_type: str) -> str:
    return f"Alert: {notification_type}"


def push_message(notification_type: str, payload: Any) -> Dict[str, str]:
    return {
        "title": alert_title(notification_type),
        "body": payload_text(payload) if payload is not None else "",
        "url": "/admin",
    }


def parse_channels(channel: Optional[str]) -> FrozenSet[str]:
    """
    Turn the comma-separated channel column into a set of known channels.
    Empty values and "all" expand to every channel.
    """
    names = [c.strip().lower() for c in (channel or ALL).split(",") if c.strip()]
    if not names or ALL in names:
        return frozenset(CHANNELS)

    requested = set()
    for name in names:
        if name in CHANNELS:
            requested.add(name)
        else:
            logger.warning("ignoring unknown notification channel %r", name)
    return frozenset(requested)


def enqueue_notification(
    datastore: Datastore,
    notification_type: str,
    payload: Payload = None,
    *,
    channel: str = ALL,
    booking_id: Optional[str] = None,
    enquiry_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Persist a pending notification for the dispatcher to pick up."""
    row = datastore.insert(
        "notifications",
        {
            "type": notification_type,
            "payload": payload,
            "channel": channel,
            "booking_id": booking_id,
            "enquiry_id": enquiry_id,
            "status": "pending",
            "attempts": 0,
        },
    )
    logger.info("queued notification %s (%s via %s)", row["id"], notification_type, channel)
    return row
