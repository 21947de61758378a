# =============================================================================
# core/models.py  —  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the *shape* of every piece of information that flows
# through the sales tool services.  They carry (almost) no behavior — they're
# structured bags of data the tools read from the CRM or build from mocks.
#
# THREE FAMILIES OF MODELS:
#   1. CallContext          — who is calling (passed explicitly, never global)
#   2. CRM records          — read-only snapshots fetched from Dataverse
#   3. Quote line items     — the inputs to the quote arithmetic
#
# NAMING ON THE WIRE:
#   Fields are snake_case here.  The envelope (core/envelope.py) converts them
#   to camelCase when serializing, so the JSON the MCP host sees is stable
#   ("closeProbability", "businessUnitId", ...).
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


# -----------------------------------------------------------------------------
# CallContext — the caller's identity for ONE tool call
# -----------------------------------------------------------------------------
# The server layer builds this from the HTTP request (Authorization header,
# MCP session id) and hands it to the core.  Core code never reaches into a
# global request object to find out who is calling.
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class CallContext:
    """Request-scoped caller identity."""

    user_name: str = "Anonymous"
    user_id: str = "Unknown"
    bearer_token: Optional[str] = None     # Forwarded to the CRM (on-behalf-of)
    session_id: Optional[str] = None       # MCP session id, bookkeeping only


# -----------------------------------------------------------------------------
# IdentityRecord — result of the CRM "WhoAmI" lookup
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class IdentityRecord:
    """The CRM user the delegated token resolves to."""

    user_id: str
    business_unit_id: str
    organization_id: str


# -----------------------------------------------------------------------------
# OpportunityRecord — one sales opportunity
# -----------------------------------------------------------------------------
# Every field except the id is Optional: the CRM simply omits attributes
# that were never filled in, and the insight tool substitutes a readable
# default ("Unknown", "Not set", ...) for each missing one.
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class OpportunityRecord:
    """A read-only snapshot of a CRM opportunity."""

    opportunity_id: str
    name: Optional[str] = None
    estimated_value: Optional[Decimal] = None
    close_probability: Optional[int] = None     # 0–100
    step_name: Optional[str] = None             # Sales phase, e.g. "3-Propose"
    estimated_close_date: Optional[datetime] = None
    status_code: Optional[int] = None
    status_label: Optional[str] = None          # Formatted value, e.g. "In Progress"
    description: Optional[str] = None
    created_on: Optional[datetime] = None
    modified_on: Optional[datetime] = None


# -----------------------------------------------------------------------------
# OpportunityProductRecord — one product line attached to an opportunity
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class OpportunityProductRecord:
    """A product line on an opportunity."""

    product_id: Optional[str] = None
    description: Optional[str] = None
    price_per_unit: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    base_amount: Optional[Decimal] = None       # price_per_unit × quantity, CRM-computed


# -----------------------------------------------------------------------------
# QuoteLineItem — one position on a generated quote
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class QuoteLineItem:
    """A quote position.  discount is a percentage (0–100)."""

    position: int
    product: str
    quantity: int
    unit_price: Decimal
    discount: int = 0

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


# -----------------------------------------------------------------------------
# QuoteTotals — the arithmetic summary of a quote
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class QuoteTotals:
    """Subtotal → discount → net → tax → grand total."""

    subtotal: Decimal
    total_discount: Decimal
    net_total: Decimal
    tax_rate: int
    tax_amount: Decimal
    grand_total: Decimal
    currency: str = "EUR"


# -----------------------------------------------------------------------------
# Mock-only shapes used by the simulated tools
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class DocumentInfo:
    """A document found for a customer or a quote."""

    name: str
    type: str
    url: str
    size: Optional[str] = None
    modified: Optional[datetime] = None
    mandatory: Optional[bool] = None
    valid_until: Optional[datetime] = None


@dataclass(frozen=True)
class DiscountTier:
    tier: str
    min_discount: int
    max_discount: int
    reason: str


@dataclass(frozen=True)
class StockLevel:
    name: str
    sku: str
    available: int
    reserved: int
    lead_time_days: int
    warehouse: str


@dataclass(frozen=True)
class PriceQuote:
    name: str
    price: Decimal
    currency: str
    available: bool
    stock: int
    discount: int = 0


@dataclass
class ValidationReport:
    """Outcome of the formal lead checks."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors
