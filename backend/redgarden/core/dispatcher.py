"""
Notification outbox dispatcher.

One run reads a batch of pending notification rows, delivers each one over
its requested channels and records the outcome on the row. Push failures are
isolated per subscription; an email, SMS or Telegram failure fails the whole
record, which stays pending for the next run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from ..config import Settings
from ..errors import ChannelNotConfigured, DatastoreError, PushEndpointGone
from ..integrations.senders import ChannelSenders
from .claims import NOTIFICATION_CLAIMS, claim, owned_filter, release_claim_patch, release_stale_claims
from .database import utcnow
from .datastore import Datastore
from .notifications import alert_title, compose_text, parse_channels, push_message

logger = logging.getLogger(__name__)

Notification = Dict[str, Any]


@dataclass
class DispatchSummary:
    selected: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class NotificationDispatcher:
    def __init__(self, settings: Settings, datastore: Datastore, senders: ChannelSenders) -> None:
        self.settings = settings
        self.datastore = datastore
        self.senders = senders

    async def run_once(self) -> DispatchSummary:
        """
        Process one batch. A DatastoreError while fetching the batch propagates,
        per-record failures never do.
        """
        claiming = self.settings.worker_claim_rows
        if claiming:
            release_stale_claims(
                self.datastore, NOTIFICATION_CLAIMS, self.settings.claim_timeout_seconds
            )

        batch = self.datastore.select(
            "notifications",
            {"status": "pending"},
            order_by="created_at",
            limit=self.settings.notification_batch_size,
        )
        summary = DispatchSummary(selected=len(batch))
        logger.info("dispatching %d pending notifications", len(batch))

        for n in batch:
            if claiming and not self._claim(n):
                summary.skipped += 1
                continue

            if await self.process_notification(n):
                summary.sent += 1
            else:
                summary.failed += 1

        logger.info(
            "dispatch finished: %d sent, %d failed, %d skipped",
            summary.sent,
            summary.failed,
            summary.skipped,
        )
        return summary

    def _claim(self, n: Notification) -> bool:
        try:
            claimed = claim(self.datastore, NOTIFICATION_CLAIMS, n["id"], self.settings.worker_id)
        except DatastoreError as exc:
            logger.error("could not claim notification %s: %s", n["id"], exc)
            return False
        if not claimed:
            logger.info("notification %s was claimed elsewhere, skipping", n["id"])
        return claimed

    async def process_notification(self, n: Notification) -> bool:
        """Deliver one record on every requested channel; True when marked sent."""
        ntype = n["type"]
        payload = n.get("payload")
        text = compose_text(ntype, payload)
        channels = parse_channels(n.get("channel"))

        try:
            if "push" in channels:
                await self._send_push(n)
            if "email" in channels:
                await self.senders.email.send(alert_title(ntype), text)
            if "sms" in channels:
                await self.senders.sms.send(text)
            if "telegram" in channels:
                await self.senders.telegram.send(text)
        except Exception as exc:
            logger.error("notification %s send failed: %s", n["id"], exc)
            self._record_failure(n, exc)
            return False

        self._write(n, {"status": "sent", "sent_at": utcnow(), **release_claim_patch(NOTIFICATION_CLAIMS)})
        logger.info("notification %s sent via %s", n["id"], ",".join(sorted(channels)))
        return True

    async def _send_push(self, n: Notification) -> None:
        try:
            subs = self.datastore.select("push_subscriptions", columns=("id", "subscription"))
        except DatastoreError as exc:
            logger.error("could not load push subscriptions: %s", exc)
            return
        if not subs:
            return

        message = push_message(n["type"], n.get("payload"))
        for s in subs:
            try:
                await self.senders.push.send(s["subscription"], message)
            except PushEndpointGone as exc:
                logger.warning("push subscription %s is gone (%s), removing it", s["id"], exc.status_code)
                try:
                    self.datastore.delete("push_subscriptions", {"id": s["id"]})
                except DatastoreError as del_exc:
                    logger.error("could not delete push subscription %s: %s", s["id"], del_exc)
            except ChannelNotConfigured as exc:
                logger.error("push send error: %s", exc)
                return
            except Exception as exc:
                logger.error("push send error for subscription %s: %s", s["id"], exc)

    def _record_failure(self, n: Notification, exc: Exception) -> None:
        attempts = (n.get("attempts") or 0) + 1
        status = "pending"
        max_attempts = self.settings.notification_max_attempts
        if max_attempts and attempts >= max_attempts:
            status = "failed"
            logger.warning("notification %s parked after %d attempts", n["id"], attempts)

        patch = {
            "status": status,
            "attempts": attempts,
            "last_error": f"{type(exc).__name__}: {exc}",
        }
        patch.update(release_claim_patch(NOTIFICATION_CLAIMS))
        self._write(n, patch)

    def _write(self, n: Notification, patch: Dict[str, Any]) -> None:
        where = owned_filter(
            NOTIFICATION_CLAIMS, n["id"], self.settings.worker_id, self.settings.worker_claim_rows
        )
        try:
            changed = self.datastore.update("notifications", where, patch)
        except DatastoreError as exc:
            logger.error("could not record outcome for notification %s: %s", n["id"], exc)
            return
        if not changed:
            logger.warning("notification %s changed while being dispatched, keeping its current state", n["id"])
