"""
Invoice generation worker.

Admins request an invoice by setting ``bookings.invoice_status = 'pending'``.
Each run picks up a batch of such bookings, renders the invoice document,
uploads it under a key derived from the booking id and marks the booking
finalized. A booking that fails stays pending and is retried next run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from ..config import Settings
from ..errors import DatastoreError, RedGardenError
from .claims import INVOICE_CLAIMS, claim, owned_filter, release_claim_patch, release_stale_claims
from .datastore import Datastore
from .invoice_document import build_invoice_context, invoice_number_for, invoice_storage_key
from .renderer import DocumentRenderer

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def upload(self, key: str, data: bytes, content_type: str, upsert: bool = True) -> None: ...

    def public_url(self, key: str) -> str: ...


@dataclass
class InvoiceRunSummary:
    selected: int = 0
    finalized: int = 0
    failed: int = 0
    skipped: int = 0


class InvoiceGenerator:
    def __init__(
        self,
        settings: Settings,
        datastore: Datastore,
        renderer: DocumentRenderer,
        storage: ObjectStorage,
    ) -> None:
        self.settings = settings
        self.datastore = datastore
        self.renderer = renderer
        self.storage = storage

    def _name_of(self, table: str, row_id: Optional[str]) -> Optional[str]:
        if not row_id:
            return None
        row = self.datastore.get(table, row_id)
        return row["name"] if row else None

    def _site_settings(self) -> Dict[str, Any]:
        rows = self.datastore.select("site_settings", limit=1)
        return rows[0] if rows else {}

    async def generate(self, booking_id: str) -> str:
        """Render, upload and record the invoice for one booking; returns its public URL."""
        booking = self.datastore.get("bookings", booking_id)
        if booking is None:
            raise RedGardenError(f"booking {booking_id} not found")

        context = build_invoice_context(
            booking,
            self._site_settings(),
            self.settings,
            event_name=self._name_of("events", booking.get("event_id")),
            facility_name=self._name_of("facilities", booking.get("facility_id")),
        )

        document = await self.renderer.render(f"invoice-{booking_id}", context)

        key = invoice_storage_key(booking_id, self.renderer.extension)
        await self.storage.upload(key, document, self.renderer.content_type, upsert=True)
        url = self.storage.public_url(key)

        patch = {
            "invoice_url": url,
            "invoice_status": "finalized",
            "invoice_number": invoice_number_for(booking),
            "invoice_last_error": None,
        }
        patch.update(release_claim_patch(INVOICE_CLAIMS))
        where = owned_filter(
            INVOICE_CLAIMS, booking_id, self.settings.worker_id, self.settings.worker_claim_rows
        )
        if not self.datastore.update("bookings", where, patch):
            # re-requested or edited during rendering; the admin's state wins
            logger.warning("booking %s changed while its invoice was rendered, not finalizing", booking_id)
            return url

        logger.info("invoice for booking %s generated and uploaded: %s", booking_id, url)
        return url


class InvoiceWorker:
    def __init__(self, settings: Settings, datastore: Datastore, generator: InvoiceGenerator) -> None:
        self.settings = settings
        self.datastore = datastore
        self.generator = generator

    def fetch_pending(self) -> list[Dict[str, Any]]:
        return self.datastore.select(
            "bookings",
            {"invoice_status": "pending"},
            columns=("id", "invoice_status", "invoice_attempts"),
            order_by="updated_at",
            limit=self.settings.invoice_batch_size,
        )

    async def run_once(self) -> InvoiceRunSummary:
        claiming = self.settings.worker_claim_rows
        if claiming:
            release_stale_claims(self.datastore, INVOICE_CLAIMS, self.settings.claim_timeout_seconds)

        pending = self.fetch_pending()
        summary = InvoiceRunSummary(selected=len(pending))
        logger.info("found %d bookings awaiting invoices", len(pending))

        for b in pending:
            if claiming and not self._claim(b):
                summary.skipped += 1
                continue
            if await self.process_booking(b):
                summary.finalized += 1
            else:
                summary.failed += 1
        return summary

    def _claim(self, booking: Dict[str, Any]) -> bool:
        try:
            return claim(self.datastore, INVOICE_CLAIMS, booking["id"], self.settings.worker_id)
        except DatastoreError as exc:
            logger.error("could not claim booking %s: %s", booking["id"], exc)
            return False

    async def process_booking(self, booking: Dict[str, Any]) -> bool:
        booking_id = booking["id"]
        logger.info("generating invoice for booking %s", booking_id)
        try:
            await self.generator.generate(booking_id)
        except Exception as exc:
            logger.error("generation failed for %s: %s", booking_id, exc)
            self._record_failure(booking, exc)
            return False
        return True

    def _record_failure(self, booking: Dict[str, Any], exc: Exception) -> None:
        attempts = (booking.get("invoice_attempts") or 0) + 1
        status = "pending"
        max_attempts = self.settings.invoice_max_attempts
        if max_attempts and attempts >= max_attempts:
            status = "failed"
            logger.warning("booking %s invoice parked after %d attempts", booking["id"], attempts)

        patch = {
            "invoice_status": status,
            "invoice_attempts": attempts,
            "invoice_last_error": f"{type(exc).__name__}: {exc}",
        }
        patch.update(release_claim_patch(INVOICE_CLAIMS))
        where = owned_filter(
            INVOICE_CLAIMS, booking["id"], self.settings.worker_id, self.settings.worker_claim_rows
        )
        try:
            self.datastore.update("bookings", where, patch)
        except DatastoreError as db_exc:
            logger.error("could not record invoice failure for %s: %s", booking["id"], db_exc)

    async def run_forever(self, interval: Optional[float] = None) -> None:
        """Alternate deployment mode: poll continuously instead of once per cron tick."""
        interval = self.settings.invoice_loop_interval if interval is None else interval
        logger.info("invoice worker started, polling every %ss", interval)
        while True:
            try:
                await self.run_once()
            except DatastoreError as exc:
                logger.error("invoice poll failed: %s", exc)
            await asyncio.sleep(interval)
