from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core import quote
from core.envelope import Failure, to_wire
from core.models import DocumentInfo, QuoteLineItem

from conftest import NIL_GUID, QUOTE_ID


def test_compute_quote_totals():
    totals = quote.compute_quote_totals([
        QuoteLineItem(position=1, product="A", quantity=10, unit_price=Decimal("100"), discount=0),
        QuoteLineItem(position=2, product="B", quantity=5, unit_price=Decimal("200"), discount=10),
    ])

    assert totals.subtotal == Decimal("2000")
    assert totals.total_discount == Decimal("100")
    assert totals.net_total == Decimal("1900")
    assert totals.tax_rate == 19
    assert totals.tax_amount == Decimal("361")
    assert totals.grand_total == Decimal("2261")


def test_compute_quote_totals_empty():
    totals = quote.compute_quote_totals([])
    assert totals.grand_total == 0


def test_generate_quote_summary():
    wire = to_wire(quote.generate_quote_summary(QUOTE_ID))

    assert wire["success"] is True
    assert wire["quoteNumber"] == f"Q-{datetime.now(timezone.utc).year}-3f2504e0"
    assert len(wire["lineItems"]) == 3
    assert wire["lineItems"][1] == {
        "position": 2, "product": "Product B", "quantity": 5,
        "unitPrice": 200, "totalPrice": 1000, "discount": 10,
    }
    assert wire["summary"] == {
        "subtotal": 2500,
        "totalDiscount": 100,
        "netTotal": 2400,
        "taxRate": 19,
        "taxAmount": 456,
        "grandTotal": 2856,
        "currency": "EUR",
    }
    created = datetime.fromisoformat(wire["createdDate"].replace("Z", "+00:00"))
    valid_until = datetime.fromisoformat(wire["validUntil"].replace("Z", "+00:00"))
    assert valid_until - created == timedelta(days=30)


def test_product_availability():
    wire = to_wire(quote.get_product_availability(QUOTE_ID))

    assert wire["quoteId"] == QUOTE_ID
    assert wire["totalAvailable"] == 150
    assert wire["allInStock"] is False
    assert wire["maxLeadTime"] == 14
    assert wire["products"][0]["leadTimeDays"] == 2


def test_discount_range():
    wire = to_wire(quote.calculate_discount_range(QUOTE_ID))

    assert (wire["minimumDiscount"], wire["recommendedDiscount"], wire["maximumDiscount"]) == (5, 12, 20)
    assert [t["tier"] for t in wire["discountTiers"]] == ["Standard", "Volume", "Loyalty"]
    assert wire["factors"]["orderVolume"] == "High"


def test_compliance_documents():
    wire = to_wire(quote.search_compliance_documents(QUOTE_ID))

    assert wire["totalDocuments"] == 4
    assert wire["mandatoryDocuments"] == 3
    assert wire["allMandatoryPresent"] is True
    assert wire["expiringDocuments"] == []


def test_compliance_summary_flags_expiring_and_expired():
    now = datetime(2026, 10, 18, tzinfo=timezone.utc)
    docs = [
        DocumentInfo(name="soon.pdf", type="t", url="/soon", mandatory=False, valid_until=now + timedelta(days=10)),
        DocumentInfo(name="gone.pdf", type="t", url="/gone", mandatory=True, valid_until=now - timedelta(days=1)),
        DocumentInfo(name="fine.pdf", type="t", url="/fine", mandatory=True, valid_until=now + timedelta(days=400)),
    ]
    summary = quote.summarize_compliance(docs, now)

    assert summary["all_mandatory_present"] is False
    assert summary["expiring_documents"] == ["soon.pdf", "gone.pdf"]


@pytest.mark.parametrize(
    "tool",
    [
        quote.get_product_availability,
        quote.calculate_discount_range,
        quote.search_compliance_documents,
        quote.generate_quote_summary,
    ],
)
@pytest.mark.parametrize("quote_id", [NIL_GUID, "", None, "Q-2026-1"])
def test_quote_tools_reject_invalid_id(tool, quote_id):
    response = tool(quote_id)

    assert isinstance(response, Failure)
    assert response.message == "Invalid parameter: QuoteId must not be empty."


def test_quote_summary_failure_uses_prefix(monkeypatch):
    def broken():
        raise RuntimeError("CPQ timeout")

    monkeypatch.setattr(quote, "mock_line_items", broken)
    wire = to_wire(quote.generate_quote_summary(QUOTE_ID))

    assert wire == {"success": False, "error": "Error generating quote: CPQ timeout", "timestamp": wire["timestamp"]}
