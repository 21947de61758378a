# =============================================================================
# core/quote.py  —  Quote Generation Logic
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Backs the four quote tools:
#     - get_product_availability     stock, reservations, lead times (ERP/CPQ)
#     - calculate_discount_range     recommended discount tiers
#     - search_compliance_documents  terms, privacy, certificates for a quote
#     - generate_quote_summary       positions, totals, tax, terms
#
# THE ARITHMETIC:
#   compute_quote_totals() is the only real calculation here, and it is kept
#   separate from the mocked line items so it can be tested on its own:
#
#     subtotal       = Σ quantity × unit_price
#     total_discount = Σ line_total × discount% / 100
#     net_total      = subtotal − total_discount
#     tax_amount     = net_total × tax_rate / 100     (19% VAT)
#     grand_total    = net_total + tax_amount
#
#   Decimal throughout — money is never a float until it hits the wire.
# =============================================================================

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional

from core.envelope import ToolResponse, ToolSpec, invoke_tool, require_guid, utc_now
from core.models import (
    CallContext,
    DiscountTier,
    DocumentInfo,
    QuoteLineItem,
    QuoteTotals,
    StockLevel,
)

CURRENCY = "EUR"
VAT_RATE = 19
QUOTE_VALIDITY_DAYS = 30
EXPIRY_WARNING_WINDOW = timedelta(days=90)

PAYMENT_TERMS = "Payment within 30 days net"
DELIVERY_TERMS = "Free delivery for orders from 500 EUR"

_INVALID_QUOTE_ID = "Invalid parameter: QuoteId must not be empty."

AVAILABILITY = ToolSpec(
    name="getProductAvailability",
    validation_message=_INVALID_QUOTE_ID,
    error_prefix="Error retrieving availability",
)

DISCOUNT_RANGE = ToolSpec(
    name="calculateDiscountRange",
    validation_message=_INVALID_QUOTE_ID,
    error_prefix="Error calculating discount range",
)

COMPLIANCE = ToolSpec(
    name="searchComplianceDocuments",
    validation_message=_INVALID_QUOTE_ID,
    error_prefix="Error searching compliance documents",
)

QUOTE_SUMMARY = ToolSpec(
    name="generateQuoteSummary",
    validation_message=_INVALID_QUOTE_ID,
    error_prefix="Error generating quote",
)


# =============================================================================
# Pure calculations
# =============================================================================
def compute_quote_totals(line_items: Iterable[QuoteLineItem], tax_rate: int = VAT_RATE) -> QuoteTotals:
    items = list(line_items)
    subtotal = sum((i.total_price for i in items), Decimal("0"))
    total_discount = sum((i.total_price * i.discount / 100 for i in items), Decimal("0"))
    net_total = subtotal - total_discount
    tax_amount = net_total * Decimal(tax_rate) / 100
    return QuoteTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        net_total=net_total,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        grand_total=net_total + tax_amount,
        currency=CURRENCY,
    )


def quote_number(quote_id: str, created: datetime) -> str:
    return f"Q-{created.year}-{quote_id[:8]}"


def summarize_availability(products: list[StockLevel]) -> dict[str, Any]:
    return {
        "total_available": sum(p.available for p in products),
        "all_in_stock": all(p.available > 0 for p in products),
        "max_lead_time": max((p.lead_time_days for p in products), default=0),
    }


def summarize_compliance(documents: list[DocumentInfo], now: datetime) -> dict[str, Any]:
    mandatory = [d for d in documents if d.mandatory]
    return {
        "total_documents": len(documents),
        "mandatory_documents": len(mandatory),
        "all_mandatory_present": all(d.valid_until is not None and d.valid_until > now for d in mandatory),
        "expiring_documents": [
            d.name for d in documents
            if d.valid_until is not None and d.valid_until < now + EXPIRY_WARNING_WINDOW
        ],
    }


# =============================================================================
# Mock sources (ERP / CPQ / document management)
# =============================================================================
def mock_stock_levels() -> list[StockLevel]:
    return [
        StockLevel(name="Product A", sku="SKU-001", available=50, reserved=10, lead_time_days=2, warehouse="Hamburg"),
        StockLevel(name="Product B", sku="SKU-002", available=0, reserved=5, lead_time_days=14, warehouse="Munich"),
        StockLevel(name="Product C", sku="SKU-003", available=100, reserved=0, lead_time_days=1, warehouse="Berlin"),
    ]


def mock_discount_tiers() -> list[DiscountTier]:
    return [
        DiscountTier(tier="Standard", min_discount=5, max_discount=10, reason="Standard discount for new customers"),
        DiscountTier(tier="Volume", min_discount=10, max_discount=15, reason="Bulk purchase of 10 units or more"),
        DiscountTier(tier="Loyalty", min_discount=15, max_discount=20,
                     reason="Existing customer with a business relationship of more than 3 years"),
    ]


def mock_compliance_documents(now: datetime) -> list[DocumentInfo]:
    return [
        DocumentInfo(name="Terms_Standard_2026.pdf", type="General terms and conditions", mandatory=True,
                     valid_until=now + timedelta(days=365), url="/compliance/terms.pdf"),
        DocumentInfo(name="GDPR_Compliance.pdf", type="Privacy policy", mandatory=True,
                     valid_until=now + timedelta(days=730), url="/compliance/gdpr.pdf"),
        DocumentInfo(name="ISO_9001_Certificate.pdf", type="Quality certificate", mandatory=False,
                     valid_until=now + timedelta(days=182), url="/compliance/iso9001.pdf"),
        DocumentInfo(name="Product_Safety_CE.pdf", type="CE marking", mandatory=True,
                     valid_until=now + timedelta(days=1095), url="/compliance/ce.pdf"),
    ]


def mock_line_items() -> list[QuoteLineItem]:
    return [
        QuoteLineItem(position=1, product="Product A", quantity=10, unit_price=Decimal("100.00"), discount=0),
        QuoteLineItem(position=2, product="Product B", quantity=5, unit_price=Decimal("200.00"), discount=10),
        QuoteLineItem(position=3, product="Service package", quantity=1, unit_price=Decimal("500.00"), discount=0),
    ]


def _line_item_row(item: QuoteLineItem) -> dict[str, Any]:
    return {
        "position": item.position,
        "product": item.product,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "total_price": item.total_price,
        "discount": item.discount,
    }


def _compliance_row(doc: DocumentInfo) -> dict[str, Any]:
    return {
        "name": doc.name,
        "type": doc.type,
        "mandatory": doc.mandatory,
        "valid_until": doc.valid_until,
        "url": doc.url,
    }


# =============================================================================
# Tools
# =============================================================================
def get_product_availability(quote_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Live availability from the ERP/CPQ system for a quote's products."""

    def derive(key: str, products: list[StockLevel]) -> dict[str, Any]:
        return {"quote_id": key, "products": products, **summarize_availability(products)}

    return invoke_tool(
        AVAILABILITY, quote_id, lambda _: mock_stock_levels(), derive, context, validate=require_guid,
    )


def calculate_discount_range(quote_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Recommended discount tiers from historical pricing and customer history."""

    def derive(key: str, tiers: list[DiscountTier]) -> dict[str, Any]:
        return {
            "quote_id": key,
            "recommended_discount": 12,
            "minimum_discount": min(t.min_discount for t in tiers),
            "maximum_discount": max(t.max_discount for t in tiers),
            "discount_tiers": tiers,
            "factors": {
                "customer_lifetime_value": "Medium",
                "order_volume": "High",
                "competitive_pressure": "Low",
                "seasonality": "Normal",
            },
        }

    return invoke_tool(
        DISCOUNT_RANGE, quote_id, lambda _: mock_discount_tiers(), derive, context, validate=require_guid,
    )


def search_compliance_documents(quote_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Mandatory compliance and legal documents for a quote."""
    now = utc_now()

    def derive(key: str, documents: list[DocumentInfo]) -> dict[str, Any]:
        summary = summarize_compliance(documents, now)
        return {
            "quote_id": key,
            "total_documents": summary["total_documents"],
            "mandatory_documents": summary["mandatory_documents"],
            "documents": [_compliance_row(d) for d in documents],
            "all_mandatory_present": summary["all_mandatory_present"],
            "expiring_documents": summary["expiring_documents"],
        }

    return invoke_tool(
        COMPLIANCE, quote_id, lambda _: mock_compliance_documents(now), derive, context, validate=require_guid,
    )


def generate_quote_summary(quote_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Structured quote content: positions, totals, discounts and terms."""

    def derive(key: str, line_items: list[QuoteLineItem]) -> dict[str, Any]:
        created = utc_now()
        return {
            "quote_id": key,
            "quote_number": quote_number(key, created),
            "created_date": created,
            "valid_until": created + timedelta(days=QUOTE_VALIDITY_DAYS),
            "line_items": [_line_item_row(i) for i in line_items],
            "summary": compute_quote_totals(line_items),
            "payment_terms": PAYMENT_TERMS,
            "delivery_terms": DELIVERY_TERMS,
        }

    return invoke_tool(
        QUOTE_SUMMARY, quote_id, lambda _: mock_line_items(), derive, context, validate=require_guid,
    )
