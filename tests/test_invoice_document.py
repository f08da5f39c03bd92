"""Tests for invoice context building and line items."""

from datetime import date

from redgarden.config import Settings
from redgarden.core.invoice_document import (
    build_invoice_context,
    build_line_items,
    invoice_number_for,
    invoice_storage_key,
)
from redgarden.core.renderer import LatexRenderer, latex_escape

BOOKING = {
    "id": "3f2a9c1e-0000-4000-8000-000000000001",
    "user_name": "Ravi & Sons",
    "user_mobile": "9876543210",
    "user_email": "ravi@example.com",
    "event_date": "2026-12-01",
    "guest_count": 250,
    "notes": "Stage decoration\n\nDJ night\n  Catering for 250  ",
    "total_amount": 100000,
    "gst": 18000,
}


def test_invoice_number_is_derived_from_id() -> None:
    """Without a stored number the first 8 id characters are used."""
    assert invoice_number_for(BOOKING) == "Q-3f2a9c1e"


def test_existing_invoice_number_wins() -> None:
    """A stored number is never replaced."""
    assert invoice_number_for(dict(BOOKING, invoice_number="INV-0042")) == "INV-0042"


def test_storage_key() -> None:
    """Key is deterministic per booking."""
    assert invoice_storage_key("abc") == "invoices/invoice-abc.pdf"


def test_notes_become_placeholder_line_items() -> None:
    """Each non-empty notes line is one unpriced row."""
    items = build_line_items(BOOKING)
    assert [i["description"] for i in items] == ["Stage decoration", "DJ night", "Catering for 250"]
    assert all(i["amount"] == "-" and i["rate"] == "-" and i["quantity"] == "-" for i in items)


def test_notes_fallback_can_be_disabled() -> None:
    """With the legacy parser off, free-text notes give no rows."""
    assert build_line_items(BOOKING, notes_fallback=False) == []


def test_structured_line_items_take_precedence() -> None:
    """line_items are used as-is and missing amounts are computed."""
    booking = dict(
        BOOKING,
        line_items=[
            {"description": "Hall rent", "quantity": 1, "rate": 50000},
            {"description": "Chairs", "quantity": 250, "rate": 20, "amount": 5000},
            {"quantity": 3},
        ],
    )
    items = build_line_items(booking)
    assert items == [
        {"description": "Hall rent", "quantity": "1", "rate": "50,000.00", "amount": "50,000.00"},
        {"description": "Chairs", "quantity": "250", "rate": "20.00", "amount": "5,000.00"},
    ]


def test_context_merges_booking_and_site_settings(settings: Settings) -> None:
    """Site settings override defaults and totals include GST."""
    site = {"hero_title": "Red Garden Banquets", "phone_number": "0612-000000", "bank_name": "SBI", "ifsc": "SBIN0000001"}
    ctx = build_invoice_context(BOOKING, site, settings, event_name="Wedding", today=date(2026, 10, 19))

    assert ctx["company_name"] == "Red Garden Banquets"
    assert ctx["location"] == "Patna, Bihar"
    assert ctx["quotation_number"] == "Q-3f2a9c1e"
    assert ctx["quotation_date"] == "19/10/2026"
    assert ctx["event_type"] == "Wedding"
    assert ctx["total_payable"] == "118,000.00"
    assert ctx["gst"] == "18,000.00"
    assert ctx["bank_name"] == "SBI"
    assert [i["index"] for i in ctx["line_items"]] == [1, 2, 3]


def test_context_defaults_without_site_settings(settings: Settings) -> None:
    """Missing settings row falls back to configured business defaults."""
    ctx = build_invoice_context({"id": "abcdefghij", "user_name": "A", "user_mobile": "1"}, {}, settings)
    assert ctx["company_name"] == "The Red Garden"
    assert ctx["total_payable"] == "0.00"
    assert ctx["logo_path"] == "public/logo.png"


def test_latex_escape() -> None:
    """LaTeX specials are escaped and None becomes empty."""
    assert latex_escape("50% & #1_a") == r"50\% \& \#1\_a"
    assert latex_escape(None) == ""
    assert latex_escape(12) == "12"


def test_template_renders_escaped_values(settings: Settings) -> None:
    """The bundled template fills every field and escapes user text."""
    renderer = LatexRenderer.from_settings(settings)
    ctx = build_invoice_context(BOOKING, {}, settings, event_name="Wedding")
    ctx["logo_filename"] = ""
    ctx.pop("logo_path")

    source = renderer.render_source(ctx)

    assert r"Ravi \& Sons" in source
    assert "Stage decoration" in source
    assert "118,000.00" in source
    assert r"\VAR{" not in source and r"\BLOCK{" not in source
    assert "includegraphics" not in source
