from datetime import datetime
from typing import Any, List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..config import Settings
from ..core.database import get_db, utcnow
from ..core.datastore import Datastore
from ..core.notifications import enqueue_notification
from ..errors import ConfigurationError
from ..integrations.github import dispatch_workflow
from ..models import Notification
from .dependencies import get_app_settings, get_datastore

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    booking_id: Optional[str] = None
    enquiry_id: Optional[str] = None
    payload: Optional[Any] = None
    channel: Optional[str] = None
    status: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None


class NotificationCreate(BaseModel):
    type: str
    payload: Optional[Any] = None
    channel: str = "all"
    booking_id: Optional[str] = None
    enquiry_id: Optional[str] = None


def _get_or_404(db: Session, notification_id: str) -> Notification:
    n = db.query(Notification).filter(Notification.id == notification_id).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    return n


@router.get("", response_model=List[NotificationOut])
def list_notifications(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    q = db.query(Notification)
    if status_filter:
        q = q.filter(Notification.status == status_filter.lower())
    return q.order_by(Notification.created_at.desc()).limit(limit).all()


@router.post("", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
def create_notification(payload: NotificationCreate, datastore: Datastore = Depends(get_datastore)):
    return enqueue_notification(
        datastore,
        payload.type,
        payload.payload,
        channel=payload.channel,
        booking_id=payload.booking_id,
        enquiry_id=payload.enquiry_id,
    )


@router.post("/dispatch")
async def trigger_dispatch(settings: Settings = Depends(get_app_settings)):
    """Run the notification worker remotely via its GitHub Actions workflow."""
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            resp = await dispatch_workflow(settings, client)
    except ConfigurationError:
        return JSONResponse({"error": "Missing GitHub env vars"}, status_code=500)
    except httpx.RequestError as exc:
        return JSONResponse({"error": str(exc)}, status_code=502)

    if resp.status_code == 204:
        return {"ok": True, "message": "Workflow dispatched"}
    return JSONResponse({"error": resp.text}, status_code=resp.status_code)


@router.post("/{notification_id}/resend", response_model=NotificationOut)
def resend_notification(notification_id: str, db: Session = Depends(get_db)):
    n = _get_or_404(db, notification_id)
    n.status = "pending"
    n.attempts = 0
    n.last_error = None
    n.claimed_by = None
    n.claimed_at = None
    db.commit()
    db.refresh(n)
    return n


@router.post("/{notification_id}/mark-sent", response_model=NotificationOut)
def mark_sent(notification_id: str, db: Session = Depends(get_db)):
    n = _get_or_404(db, notification_id)
    n.status = "sent"
    n.sent_at = utcnow()
    n.claimed_by = None
    n.claimed_at = None
    db.commit()
    db.refresh(n)
    return n


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(notification_id: str, db: Session = Depends(get_db)):
    n = _get_or_404(db, notification_id)
    db.delete(n)
    db.commit()
