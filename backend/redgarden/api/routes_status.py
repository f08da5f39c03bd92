from fastapi import APIRouter, Depends

from ..core.datastore import Datastore
from .dependencies import get_datastore

router = APIRouter(tags=["status"])


@router.get("/health")
def health():
    return {"status": "healthy"}


@router.get("/status/queues")
def queue_status(datastore: Datastore = Depends(get_datastore)):
    return {
        "notifications": {
            state: datastore.count("notifications", {"status": state})
            for state in ("pending", "processing", "sent", "failed")
        },
        "invoices": {
            state: datastore.count("bookings", {"invoice_status": state})
            for state in ("pending", "processing", "finalized", "failed")
        },
    }
