from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.orm import Session

from ..config import Settings
from ..core.database import get_db
from ..models import PushSubscription
from .dependencies import get_app_settings

router = APIRouter(prefix="/push", tags=["push"])


class SubscriptionRequest(BaseModel):
    user_id: str
    subscription: Dict[str, Any]
    label: Optional[str] = "Admin Browser"

    @field_validator("subscription")
    @classmethod
    def _has_endpoint(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not value.get("endpoint"):
            raise ValueError("subscription.endpoint is required")
        return value


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    label: Optional[str]
    created_at: datetime


@router.get("/vapid")
def vapid_public_key(settings: Settings = Depends(get_app_settings)):
    if not settings.vapid_public_key:
        return JSONResponse({"error": "VAPID_PUBLIC_KEY not set"}, status_code=500)
    return {"publicKey": settings.vapid_public_key}


@router.post("/subscriptions", response_model=SubscriptionOut, status_code=status.HTTP_201_CREATED)
def register_subscription(payload: SubscriptionRequest, db: Session = Depends(get_db)):
    endpoint = payload.subscription["endpoint"]

    # the same browser re-subscribing replaces its previous row
    existing = [
        s for s in db.query(PushSubscription).filter(PushSubscription.user_id == payload.user_id).all()
        if (s.subscription or {}).get("endpoint") == endpoint
    ]
    for s in existing:
        db.delete(s)

    sub = PushSubscription(
        user_id=payload.user_id,
        subscription=payload.subscription,
        label=payload.label,
    )
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub


@router.delete("/subscriptions/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_subscription(subscription_id: str, db: Session = Depends(get_db)):
    sub = db.query(PushSubscription).filter(PushSubscription.id == subscription_id).first()
    if not sub:
        raise HTTPException(status_code=404, detail="Subscription not found")
    db.delete(sub)
    db.commit()
