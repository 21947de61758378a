# =============================================================================
# core/crm.py  —  CRM (Dataverse) Accessor
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Gives the opportunity tools read-only access to the CRM through exactly
#   three operations:
#
#     identity_lookup()                     → IdentityRecord   ("WhoAmI")
#     fetch_opportunity(opportunity_id)     → OpportunityRecord
#     fetch_opportunity_products(opp_id)    → list[OpportunityProductRecord]
#
# DATA SOURCE TOGGLE (see core/config.py):
#   Both providers implement the same CrmAccessor protocol, so the tool logic
#   in core/opportunity.py doesn't know or care which one it talks to.
#
#     MockCrmAccessor     — deterministic records, no network
#     DataverseClient     — Dataverse Web API with a delegated user token
#
# DELEGATED USER TOKEN (on-behalf-of):
#   The MCP host calls us with the *user's* bearer token.  We exchange that
#   token at the Azure AD token endpoint for a Dataverse-scoped token, so
#   every CRM query runs with the user's own permissions.
#
# RESOURCE SCOPE:
#   open_crm() is a context manager.  The HTTP client and the exchanged token
#   live exactly as long as the `with` block of one tool call, and are
#   released whether the fetch succeeded or failed.
# =============================================================================

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, ContextManager, Iterator, Optional, Protocol

import httpx

from core.config import Settings
from core.models import (
    CallContext,
    IdentityRecord,
    OpportunityProductRecord,
    OpportunityRecord,
)

logger = logging.getLogger(__name__)

API_PATH = "/api/data/v9.2/"
OBO_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
FORMATTED_VALUE = "OData.Community.Display.V1.FormattedValue"

OPPORTUNITY_COLUMNS = (
    "opportunityid",
    "name",
    "estimatedvalue",
    "closeprobability",
    "stepname",
    "actualclosedate",
    "estimatedclosedate",
    "statuscode",
    "statecode",
    "description",
    "createdon",
    "modifiedon",
)

PRODUCT_COLUMNS = (
    "opportunityproductid",
    "_productid_value",
    "productdescription",
    "priceperunit",
    "quantity",
    "baseamount",
)


class CrmError(Exception):
    """Base class for CRM accessor failures."""


class CrmConfigurationError(CrmError):
    """Missing settings or missing caller token."""


class CrmAccessError(CrmError):
    """The token endpoint or the Dataverse API returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CrmAccessor(Protocol):
    def identity_lookup(self) -> IdentityRecord: ...

    def fetch_opportunity(self, opportunity_id: str) -> OpportunityRecord: ...

    def fetch_opportunity_products(self, opportunity_id: str) -> list[OpportunityProductRecord]: ...


CrmFactory = Callable[[CallContext], ContextManager[CrmAccessor]]


# =============================================================================
# Parsing helpers (Dataverse JSON → records)
# =============================================================================
def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def _int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def _datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _guid(opportunity_id: str) -> str:
    # Dataverse keys are GUIDs; reject anything else before the HTTP call.
    return str(uuid.UUID(opportunity_id.strip()))


def parse_opportunity(opportunity_id: str, data: dict[str, Any]) -> OpportunityRecord:
    return OpportunityRecord(
        opportunity_id=data.get("opportunityid") or opportunity_id,
        name=data.get("name"),
        estimated_value=_decimal(data.get("estimatedvalue")),
        close_probability=_int(data.get("closeprobability")),
        step_name=data.get("stepname"),
        estimated_close_date=_datetime(data.get("estimatedclosedate")),
        status_code=_int(data.get("statuscode")),
        status_label=data.get(f"statuscode@{FORMATTED_VALUE}"),
        description=data.get("description"),
        created_on=_datetime(data.get("createdon")),
        modified_on=_datetime(data.get("modifiedon")),
    )


def parse_product(data: dict[str, Any]) -> OpportunityProductRecord:
    return OpportunityProductRecord(
        product_id=data.get("_productid_value") or data.get("opportunityproductid"),
        description=data.get("productdescription"),
        price_per_unit=_decimal(data.get("priceperunit")),
        quantity=_decimal(data.get("quantity")),
        base_amount=_decimal(data.get("baseamount")),
    )


# =============================================================================
# LIVE PROVIDER: Dataverse Web API
# =============================================================================
def acquire_on_behalf_of_token(http: httpx.Client, settings: Settings, user_token: str) -> str:
    """Exchange the caller's token for a Dataverse-scoped token."""
    missing = [
        name for name, value in (
            ("AZURE_TENANT_ID", settings.tenant_id),
            ("AZURE_CLIENT_ID", settings.client_id),
            ("AZURE_CLIENT_SECRET", settings.client_secret),
            ("DATAVERSE_URL", settings.dataverse_url),
        )
        if not value
    ]
    if missing:
        raise CrmConfigurationError(f"Missing configuration: {', '.join(missing)}")

    logger.info(
        "Starting on-behalf-of flow | tenant=%s | client=%s | scope=%s",
        settings.tenant_id, settings.client_id, settings.resolved_scope,
    )
    try:
        response = http.post(
            settings.token_endpoint,
            data={
                "client_id": settings.client_id,
                "client_secret": settings.client_secret,
                "grant_type": OBO_GRANT_TYPE,
                "assertion": user_token,
                "scope": settings.resolved_scope,
                "requested_token_use": "on_behalf_of",
            },
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise CrmAccessError(
            f"Token exchange failed with HTTP {exc.response.status_code}",
            status_code=exc.response.status_code,
            body=exc.response.text,
        ) from exc
    except httpx.RequestError as exc:
        raise CrmAccessError(f"Token exchange request failed: {exc}") from exc

    token = response.json().get("access_token")
    if not token:
        raise CrmAccessError("Token endpoint returned no access_token")
    logger.info("On-behalf-of token acquired for Dataverse")
    return token


class DataverseClient:
    """CrmAccessor backed by the Dataverse Web API.

    The client does not own `http`; open_crm() creates and closes it.
    """

    def __init__(self, http: httpx.Client, access_token: str):
        self._http = http
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
            "Prefer": f'odata.include-annotations="{FORMATTED_VALUE}"',
        }

    def _get(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        try:
            response = self._http.get(API_PATH + path, params=params, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise CrmAccessError(
                f"Dataverse returned HTTP {exc.response.status_code} for {path}",
                status_code=exc.response.status_code,
                body=exc.response.text,
            ) from exc
        except httpx.RequestError as exc:
            raise CrmAccessError(f"Dataverse request failed: {exc}") from exc
        return response.json()

    def identity_lookup(self) -> IdentityRecord:
        logger.info("Running WhoAmI lookup")
        data = self._get("WhoAmI")
        identity = IdentityRecord(
            user_id=data["UserId"],
            business_unit_id=data["BusinessUnitId"],
            organization_id=data["OrganizationId"],
        )
        logger.info(
            "WhoAmI ok | user_id=%s | business_unit_id=%s | organization_id=%s",
            identity.user_id, identity.business_unit_id, identity.organization_id,
        )
        return identity

    def fetch_opportunity(self, opportunity_id: str) -> OpportunityRecord:
        key = _guid(opportunity_id)
        logger.info("Fetching opportunity %s", key)
        data = self._get(
            f"opportunities({key})",
            params={"$select": ",".join(OPPORTUNITY_COLUMNS)},
        )
        record = parse_opportunity(key, data)
        logger.info("Opportunity fetched: %s", record.name or "Unknown")
        return record

    def fetch_opportunity_products(self, opportunity_id: str) -> list[OpportunityProductRecord]:
        key = _guid(opportunity_id)
        logger.info("Fetching products for opportunity %s", key)
        data = self._get(
            "opportunityproducts",
            params={
                "$select": ",".join(PRODUCT_COLUMNS),
                "$filter": f"_opportunityid_value eq {key}",
            },
        )
        products = [parse_product(row) for row in data.get("value", [])]
        logger.info("Products fetched for opportunity %s: %d found", key, len(products))
        return products


# =============================================================================
# MOCK PROVIDER: deterministic records
# =============================================================================
class MockCrmAccessor:
    """Offline CrmAccessor.  Same id in, same records out."""

    IDENTITY = IdentityRecord(
        user_id="6f1e2a3b-0000-4c5d-8e9f-000000000001",
        business_unit_id="6f1e2a3b-0000-4c5d-8e9f-000000000002",
        organization_id="6f1e2a3b-0000-4c5d-8e9f-000000000003",
    )

    def identity_lookup(self) -> IdentityRecord:
        return self.IDENTITY

    def fetch_opportunity(self, opportunity_id: str) -> OpportunityRecord:
        return OpportunityRecord(
            opportunity_id=opportunity_id,
            name=f"Opportunity {opportunity_id[:8]}",
            estimated_value=Decimal("125000.00"),
            close_probability=65,
            step_name="3-Propose",
            estimated_close_date=datetime(2026, 12, 15, tzinfo=timezone.utc),
            status_code=1,
            status_label="In Progress",
            description="Mock opportunity for offline development",
            created_on=datetime(2026, 9, 1, 8, 30, tzinfo=timezone.utc),
            modified_on=datetime(2026, 10, 10, 14, 5, tzinfo=timezone.utc),
        )

    def fetch_opportunity_products(self, opportunity_id: str) -> list[OpportunityProductRecord]:
        return [
            OpportunityProductRecord(
                product_id="SKU-001",
                description="Product A",
                price_per_unit=Decimal("100.00"),
                quantity=Decimal("10"),
                base_amount=Decimal("1000.00"),
            ),
            OpportunityProductRecord(
                product_id="SKU-002",
                description="Product B",
                price_per_unit=Decimal("200.00"),
                quantity=Decimal("5"),
                base_amount=Decimal("1000.00"),
            ),
        ]


# =============================================================================
# PUBLIC API: open_crm (dispatcher)
# =============================================================================
@contextmanager
def open_crm(
    context: CallContext,
    settings: Settings,
    transport: Optional[httpx.BaseTransport] = None,
) -> Iterator[CrmAccessor]:
    """Acquire a CRM accessor for one tool call.

    Args:
        context: The caller; its bearer token feeds the on-behalf-of flow.
        settings: Runtime settings (live/mock toggle, Azure AD, Dataverse).
        transport: Optional httpx transport (tests inject a MockTransport).
    """
    if not settings.use_live_dataverse:
        yield MockCrmAccessor()
        return

    if not context.bearer_token:
        raise CrmConfigurationError("No valid bearer token in the Authorization header")

    with httpx.Client(
        base_url=settings.dataverse_url or "",
        timeout=settings.http_timeout_seconds,
        transport=transport,
    ) as http:
        token = acquire_on_behalf_of_token(http, settings, context.bearer_token)
        yield DataverseClient(http, token)


def crm_factory(settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> CrmFactory:
    """Bind settings so tool code only has to pass the CallContext."""

    def factory(context: CallContext) -> ContextManager[CrmAccessor]:
        return open_crm(context, settings, transport=transport)

    return factory
