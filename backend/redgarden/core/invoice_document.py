from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from ..config import Settings

LineItem = Dict[str, Any]

PLACEHOLDER = "-"


def invoice_number_for(booking: Dict[str, Any]) -> str:
    """Existing number wins; otherwise derive one from the booking id."""
    return booking.get("invoice_number") or f"Q-{str(booking['id'])[:8]}"


def invoice_storage_key(booking_id: str, extension: str = "pdf") -> str:
    return f"invoices/invoice-{booking_id}.{extension}"


def format_amount(value: Any) -> str:
    if value in (None, ""):
        return PLACEHOLDER
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return str(value)


def _structured_items(raw: List[Any]) -> List[LineItem]:
    items = []
    for entry in raw:
        if isinstance(entry, str):
            entry = {"description": entry}
        if not isinstance(entry, dict) or not entry.get("description"):
            continue
        quantity = entry.get("quantity")
        rate = entry.get("rate")
        amount = entry.get("amount")
        if amount is None and quantity is not None and rate is not None:
            try:
                amount = float(quantity) * float(rate)
            except (TypeError, ValueError):
                amount = None
        items.append(
            {
                "description": str(entry["description"]),
                "quantity": PLACEHOLDER if quantity is None else str(quantity),
                "rate": format_amount(rate),
                "amount": format_amount(amount),
            }
        )
    return items


def _items_from_notes(notes: Optional[str]) -> List[LineItem]:
    # one unpriced row per line of free text
    return [
        {"description": line.strip(), "quantity": PLACEHOLDER, "rate": PLACEHOLDER, "amount": PLACEHOLDER}
        for line in (notes or "").splitlines()
        if line.strip()
    ]


def build_line_items(booking: Dict[str, Any], notes_fallback: bool = True) -> List[LineItem]:
    structured = booking.get("line_items")
    if isinstance(structured, list) and structured:
        return _structured_items(structured)
    if notes_fallback:
        return _items_from_notes(booking.get("notes"))
    return []


def build_invoice_context(
    booking: Dict[str, Any],
    site: Dict[str, Any],
    settings: Settings,
    *,
    event_name: Optional[str] = None,
    facility_name: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Merge booking, site settings and line items into the template variables."""
    today = today or date.today()
    total = booking.get("total_amount") or 0
    gst = booking.get("gst") or 0

    items = build_line_items(booking, settings.invoice_notes_fallback)
    for index, item in enumerate(items, start=1):
        item["index"] = index

    return {
        "company_name": site.get("hero_title") or settings.invoice_company_name,
        "location": site.get("address") or settings.invoice_location,
        "phone": site.get("phone_number") or "",
        "email": site.get("contact_email") or "",
        "quotation_number": invoice_number_for(booking),
        "quotation_date": today.strftime("%d/%m/%Y"),
        "customer_name": booking.get("user_name") or "",
        "customer_mobile": booking.get("user_mobile") or "",
        "customer_address": booking.get("user_email") or "",
        "event_type": event_name or "",
        "facility": facility_name or "",
        "event_date": booking.get("event_date") or "",
        "start_time": booking.get("start_time") or "",
        "end_time": booking.get("end_time") or "",
        "guest_count": booking.get("guest_count") or "",
        "line_items": items,
        "total_amount": format_amount(total),
        "gst": format_amount(gst),
        "total_payable": format_amount(total + gst),
        "amount_paid": format_amount(booking.get("amount_paid")),
        "payment_status": booking.get("payment_status") or "",
        "bank_name": site.get("bank_name") or "",
        "bank_account": site.get("bank_account") or "",
        "ifsc": site.get("ifsc") or "",
        "branch": site.get("branch") or "",
        "logo_path": site.get("logo_path") or settings.invoice_logo_path,
    }
