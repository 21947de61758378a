# =============================================================================
# tools/opportunity_server.py  —  FastMCP server: Opportunity Insights
# =============================================================================
#
# TOOLS:
#   getPricingInformation       → mocked price list
#   queryProducts               → CRM: WhoAmI, products of the opportunity
#   searchDocumentsForCustomer  → mocked document search
#   getOpportunityInsights      → CRM: WhoAmI, opportunity, products
#
# CRM ACCESS:
#   The two CRM tools receive a factory bound to this process's Settings.
#   The factory opens a fresh accessor per call (core/crm.py → open_crm),
#   using the caller's bearer token for the on-behalf-of exchange when
#   USE_LIVE_DATAVERSE=true.
# =============================================================================

from fastmcp import FastMCP

from core import opportunity
from core.config import Settings, load_settings
from core.crm import CrmFactory, crm_factory
from tools.common import (
    configure_logging,
    current_context,
    log_request,
    log_response,
    log_status,
    run_server,
)

mcp = FastMCP("sales-opportunity-insights")

_crm: CrmFactory = crm_factory(load_settings())


def configure(settings: Settings) -> None:
    """Rebind the CRM factory (startup, tests)."""
    global _crm
    _crm = crm_factory(settings)


def get_pricing_information(opportunityId: str) -> str:
    """Live prices, discounts and availability of products and services.

    Args:
        opportunityId: GUID or string id of the opportunity.

    Returns:
        JSON with product prices, discounts, availability and totalValue.
    """
    context = current_context()
    log_request("getPricingInformation", context, opportunityId=opportunityId)
    return log_response("getPricingInformation", opportunity.get_pricing_information(opportunityId, context))


def query_products(opportunityId: str) -> str:
    """Product details of an opportunity from the CRM (Dataverse).

    WHEN TO CALL THIS: when the user asks what an opportunity contains.
    Runs with the calling user's CRM permissions.

    Args:
        opportunityId: GUID of the opportunity.

    Returns:
        JSON with crmUserId, businessUnitId, totalProducts and products
        (name, price, quantity, currency).
    """
    context = current_context()
    log_request("queryProducts", context, opportunityId=opportunityId)
    response = opportunity.query_products(opportunityId, _crm, context)
    log_status(f"success={response.success}")
    return log_response("queryProducts", response)


def search_documents_for_customer(opportunityId: str) -> str:
    """Search SharePoint/D3 for documents relevant to the customer.

    Args:
        opportunityId: GUID or string id of the opportunity.
    """
    context = current_context()
    log_request("searchDocumentsForCustomer", context, opportunityId=opportunityId)
    return log_response(
        "searchDocumentsForCustomer", opportunity.search_documents_for_customer(opportunityId, context),
    )


def get_opportunity_insights(opportunityId: str) -> str:
    """Activity, history and close probability of an opportunity with recommendations.

    Args:
        opportunityId: GUID of the opportunity.

    Returns:
        JSON with crmUser, financials (estimatedValue, productValue,
        closeProbability), status, activity and recommendations.
    """
    context = current_context()
    log_request("getOpportunityInsights", context, opportunityId=opportunityId)
    response = opportunity.get_opportunity_insights(opportunityId, _crm, context)
    log_status(f"success={response.success}")
    return log_response("getOpportunityInsights", response)


mcp.tool(name="getPricingInformation")(get_pricing_information)
mcp.tool(name="queryProducts")(query_products)
mcp.tool(name="searchDocumentsForCustomer")(search_documents_for_customer)
mcp.tool(name="getOpportunityInsights")(get_opportunity_insights)


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    configure(settings)
    run_server(mcp, settings)
