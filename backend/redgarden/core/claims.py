from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from .database import utcnow
from .datastore import Datastore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimColumns:
    """Where a queue table keeps its status and claim stamp."""

    table: str
    status: str
    claimed_by: str
    claimed_at: str
    pending: str = "pending"
    processing: str = "processing"


NOTIFICATION_CLAIMS = ClaimColumns("notifications", "status", "claimed_by", "claimed_at")
INVOICE_CLAIMS = ClaimColumns(
    "bookings", "invoice_status", "invoice_claimed_by", "invoice_claimed_at"
)


def claim(datastore: Datastore, cols: ClaimColumns, row_id: Any, worker_id: str) -> bool:
    """
    Compare-and-swap pending -> processing for one row.
    False means another worker (or an admin) changed the row first.
    """
    changed = datastore.update(
        cols.table,
        {"id": row_id, cols.status: cols.pending},
        {cols.status: cols.processing, cols.claimed_by: worker_id, cols.claimed_at: utcnow()},
    )
    return changed == 1


def release_claim_patch(cols: ClaimColumns) -> dict:
    return {cols.claimed_by: None, cols.claimed_at: None}


def owned_filter(cols: ClaimColumns, row_id: Any, worker_id: str, claiming: bool) -> dict:
    """
    Filter matching the row only while this worker still owns it.
    An admin who resends, marks sent or re-requests the row in the meantime
    takes it back, and outcome writes through this filter then match nothing.
    """
    if claiming:
        return {"id": row_id, cols.status: cols.processing, cols.claimed_by: worker_id}
    return {"id": row_id, f"{cols.status}__in": (cols.pending, cols.processing)}


def release_stale_claims(datastore: Datastore, cols: ClaimColumns, timeout_seconds: int) -> int:
    """Return rows stuck in processing longer than the timeout to pending."""
    cutoff = utcnow() - timedelta(seconds=timeout_seconds)
    patch = {cols.status: cols.pending}
    patch.update(release_claim_patch(cols))
    released = datastore.update(
        cols.table,
        {cols.status: cols.processing, f"{cols.claimed_at}__lt": cutoff},
        patch,
    )
    if released:
        logger.warning("released %d stale %s claims", released, cols.table)
    return released
