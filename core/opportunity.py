# =============================================================================
# core/opportunity.py  —  Opportunity Insight Logic
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Backs the four opportunity tools:
#     - get_pricing_information        mocked prices/discounts/stock
#     - query_products                 CRM: WhoAmI → products of the opportunity
#     - search_documents_for_customer  mocked SharePoint/D3 document search
#     - get_opportunity_insights       CRM: WhoAmI → opportunity → products,
#                                      then financials + recommendations
#
# THE FETCH / DERIVE SPLIT:
#   fetch_* functions do the CRM calls (sequentially, inside one open_crm()
#   block).  build_* / recommend() are pure functions over the fetched
#   records, so the business rules are testable without any CRM at all.
#
# RECOMMENDATION BANDS:
#   The thresholds 70 and 40 are literal placeholders carried over from the
#   first version of the service.  They are NOT a tuned business rule.
# =============================================================================

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from core.envelope import ToolResponse, ToolSpec, invoke_tool, require_text, utc_now
from core.models import (
    CallContext,
    DocumentInfo,
    IdentityRecord,
    OpportunityProductRecord,
    OpportunityRecord,
    PriceQuote,
)
from core.crm import CrmFactory

logger = logging.getLogger(__name__)

CURRENCY = "EUR"

HIGH_PROBABILITY_THRESHOLD = 70
MEDIUM_PROBABILITY_THRESHOLD = 40
HIGH_VALUE_THRESHOLD = Decimal("100000")

HIGH_PROBABILITY_TEXTS = (
    "High close probability - prioritize this opportunity!",
    "Recommendation: aim to close soon and remove all remaining obstacles.",
)
MEDIUM_PROBABILITY_TEXTS = (
    "Medium close probability - intensified account management recommended.",
    "Recommendation: increase customer contact and present a tailored solution.",
)
LOW_PROBABILITY_TEXTS = (
    "Low close probability - critical review required.",
    "Recommendation: re-evaluate the customer's needs and adjust the offer if necessary.",
)
HIGH_VALUE_TEXT = "High-value opportunity - management attention recommended."
NO_PRODUCTS_TEXT = "No products on file - please complete the offer!"

PRICING = ToolSpec(
    name="getPricingInformation",
    validation_message="Invalid parameter: OpportunityId must not be empty.",
    error_prefix="Error retrieving pricing information",
)

QUERY_PRODUCTS = ToolSpec(
    name="queryProducts",
    validation_message="Invalid parameter: OpportunityId must not be empty.",
    error_prefix="Error retrieving product data",
)

SEARCH_DOCUMENTS = ToolSpec(
    name="searchDocumentsForCustomer",
    validation_message="Invalid parameter: OpportunityId must not be empty.",
    error_prefix="Error searching documents",
)

INSIGHTS = ToolSpec(
    name="getOpportunityInsights",
    validation_message="Invalid parameter: OpportunityId must not be empty.",
    error_prefix="Error retrieving opportunity insights",
)


@dataclass(frozen=True)
class ProductSnapshot:
    identity: IdentityRecord
    products: list[OpportunityProductRecord]


@dataclass(frozen=True)
class InsightSnapshot:
    identity: IdentityRecord
    opportunity: OpportunityRecord
    products: list[OpportunityProductRecord]


# =============================================================================
# Pure rules
# =============================================================================
def recommend(close_probability: int, estimated_value: Decimal, product_count: int) -> list[str]:
    """Rule-based recommendations for an opportunity.

    Exactly one probability band applies (>= 70 high, >= 40 medium, else low),
    then the high-value and missing-products notes are appended.
    """
    if close_probability >= HIGH_PROBABILITY_THRESHOLD:
        texts = list(HIGH_PROBABILITY_TEXTS)
    elif close_probability >= MEDIUM_PROBABILITY_THRESHOLD:
        texts = list(MEDIUM_PROBABILITY_TEXTS)
    else:
        texts = list(LOW_PROBABILITY_TEXTS)

    if estimated_value > HIGH_VALUE_THRESHOLD:
        texts.append(HIGH_VALUE_TEXT)
    if product_count == 0:
        texts.append(NO_PRODUCTS_TEXT)
    return texts


def product_value(products: list[OpportunityProductRecord]) -> Decimal:
    """Sum of base amounts; lines without one count as zero."""
    return sum((p.base_amount or Decimal("0") for p in products), Decimal("0"))


def _format_date(value: Optional[datetime], fmt: str, default: str) -> str:
    return value.strftime(fmt) if value is not None else default


def build_insights(opportunity_id: str, snapshot: InsightSnapshot) -> dict[str, Any]:
    opp = snapshot.opportunity
    estimated_value = opp.estimated_value if opp.estimated_value is not None else Decimal("0")
    close_probability = opp.close_probability if opp.close_probability is not None else 0
    status_code = opp.status_label or (str(opp.status_code) if opp.status_code is not None else "Unknown")

    return {
        "opportunity_id": opportunity_id,
        "opportunity_name": opp.name or "Unknown opportunity",
        "crm_user": {
            "user_id": snapshot.identity.user_id,
            "business_unit_id": snapshot.identity.business_unit_id,
        },
        "financials": {
            "estimated_value": estimated_value,
            "product_value": product_value(snapshot.products),
            "close_probability": close_probability,
            "currency": CURRENCY,
        },
        "status": {
            "status_code": status_code,
            "sales_phase": opp.step_name or "Not defined",
            "estimated_close_date": _format_date(opp.estimated_close_date, "%d.%m.%Y", "Not set"),
        },
        "activity": {
            "created_on": _format_date(opp.created_on, "%d.%m.%Y %H:%M", "Unknown"),
            "modified_on": _format_date(opp.modified_on, "%d.%m.%Y %H:%M", "Unknown"),
            "product_count": len(snapshot.products),
        },
        "recommendations": recommend(close_probability, estimated_value, len(snapshot.products)),
    }


def build_product_list(opportunity_id: str, snapshot: ProductSnapshot) -> dict[str, Any]:
    return {
        "opportunity_id": opportunity_id,
        "crm_user_id": snapshot.identity.user_id,
        "business_unit_id": snapshot.identity.business_unit_id,
        "total_products": len(snapshot.products),
        "products": [
            {
                "name": p.description or "Unknown product",
                "price": p.price_per_unit,
                "quantity": p.quantity,
                "currency": CURRENCY,
            }
            for p in snapshot.products
        ],
    }


# =============================================================================
# Mock sources
# =============================================================================
def mock_price_list() -> list[PriceQuote]:
    return [
        PriceQuote(name="Product A", price=Decimal("100.00"), currency=CURRENCY, available=True, stock=50, discount=0),
        PriceQuote(name="Product B", price=Decimal("200.00"), currency=CURRENCY, available=False, stock=0, discount=10),
    ]


def mock_customer_documents(now: datetime) -> list[DocumentInfo]:
    return [
        DocumentInfo(name="Offer_2026.pdf", type="PDF", size="2.5 MB",
                     modified=now - timedelta(days=5), url="/documents/offer.pdf"),
        DocumentInfo(name="Product_catalog.xlsx", type="Excel", size="1.2 MB",
                     modified=now - timedelta(days=10), url="/documents/catalog.xlsx"),
        DocumentInfo(name="Customer_reference.docx", type="Word", size="0.8 MB",
                     modified=now - timedelta(days=15), url="/documents/reference.docx"),
    ]


def _document_row(doc: DocumentInfo) -> dict[str, Any]:
    return {"name": doc.name, "type": doc.type, "size": doc.size, "modified": doc.modified, "url": doc.url}


# =============================================================================
# Tools
# =============================================================================
def get_pricing_information(opportunity_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Live prices, discounts and availability for an opportunity's products."""

    def derive(key: str, products: list[PriceQuote]) -> dict[str, Any]:
        return {
            "opportunity_id": key,
            "products": products,
            "total_value": sum((p.price for p in products), Decimal("0")),
        }

    return invoke_tool(PRICING, opportunity_id, lambda _: mock_price_list(), derive, context)


def query_products(
    opportunity_id: Optional[str],
    crm: CrmFactory,
    context: Optional[CallContext] = None,
) -> ToolResponse:
    """Products of an opportunity, read from the CRM as the calling user."""
    context = context or CallContext()

    def fetch(key: str) -> ProductSnapshot:
        with crm(context) as accessor:
            identity = accessor.identity_lookup()
            logger.info(
                "CRM user identified | crm_user_id=%s | business_unit_id=%s",
                identity.user_id, identity.business_unit_id,
            )
            return ProductSnapshot(identity, accessor.fetch_opportunity_products(key))

    return invoke_tool(QUERY_PRODUCTS, opportunity_id, fetch, build_product_list, context)


def search_documents_for_customer(opportunity_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Relevant customer documents from SharePoint/D3."""

    def derive(key: str, documents: list[DocumentInfo]) -> dict[str, Any]:
        return {
            "opportunity_id": key,
            "total_documents": len(documents),
            "documents": [_document_row(d) for d in documents],
            "sources": ["SharePoint", "D3"],
        }

    return invoke_tool(
        SEARCH_DOCUMENTS, opportunity_id, lambda _: mock_customer_documents(utc_now()), derive, context,
    )


def get_opportunity_insights(
    opportunity_id: Optional[str],
    crm: CrmFactory,
    context: Optional[CallContext] = None,
) -> ToolResponse:
    """Financials, status, activity and recommendations for an opportunity."""
    context = context or CallContext()

    def fetch(key: str) -> InsightSnapshot:
        with crm(context) as accessor:
            identity = accessor.identity_lookup()
            logger.info(
                "CRM user identified | crm_user_id=%s | business_unit_id=%s",
                identity.user_id, identity.business_unit_id,
            )
            opportunity = accessor.fetch_opportunity(key)
            products = accessor.fetch_opportunity_products(key)
            return InsightSnapshot(identity, opportunity, products)

    return invoke_tool(INSIGHTS, opportunity_id, fetch, build_insights, context, validate=require_text)
