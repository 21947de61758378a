# =============================================================================
# tools/quote_server.py  —  FastMCP server: Quote Generation
# =============================================================================
#
# TOOLS:
#   getProductAvailability     → core.quote.get_product_availability
#   calculateDiscountRange     → core.quote.calculate_discount_range
#   searchComplianceDocuments  → core.quote.search_compliance_documents
#   generateQuoteSummary       → core.quote.generate_quote_summary
#
# All four take the quote's GUID.  The nil GUID is rejected by the envelope
# before any data is touched.
# =============================================================================

from fastmcp import FastMCP

from core import quote
from core.config import load_settings
from tools.common import configure_logging, current_context, log_request, log_response, run_server

mcp = FastMCP("sales-quote-generation")


def get_product_availability(quoteId: str) -> str:
    """Live availability from the ERP/CPQ system.

    Args:
        quoteId: GUID of the quote.

    Returns:
        JSON with stock per product, totalAvailable, allInStock and
        maxLeadTime (days).
    """
    context = current_context()
    log_request("getProductAvailability", context, quoteId=quoteId)
    return log_response("getProductAvailability", quote.get_product_availability(quoteId, context))


def calculate_discount_range(quoteId: str) -> str:
    """Discount ranges from historical pricing models and customer history.

    Args:
        quoteId: GUID of the quote.
    """
    context = current_context()
    log_request("calculateDiscountRange", context, quoteId=quoteId)
    return log_response("calculateDiscountRange", quote.calculate_discount_range(quoteId, context))


def search_compliance_documents(quoteId: str) -> str:
    """Compliance documents, certificates and legal requirements for a quote.

    Args:
        quoteId: GUID of the quote.
    """
    context = current_context()
    log_request("searchComplianceDocuments", context, quoteId=quoteId)
    return log_response("searchComplianceDocuments", quote.search_compliance_documents(quoteId, context))


def generate_quote_summary(quoteId: str) -> str:
    """Structured quote content with positions, prices and terms.

    WHEN TO CALL THIS: once availability and discounts are settled.

    Args:
        quoteId: GUID of the quote.

    Returns:
        JSON with quoteNumber, lineItems, summary (subtotal, totalDiscount,
        netTotal, taxRate, taxAmount, grandTotal), paymentTerms and
        deliveryTerms.
    """
    context = current_context()
    log_request("generateQuoteSummary", context, quoteId=quoteId)
    return log_response("generateQuoteSummary", quote.generate_quote_summary(quoteId, context))


mcp.tool(name="getProductAvailability")(get_product_availability)
mcp.tool(name="calculateDiscountRange")(calculate_discount_range)
mcp.tool(name="searchComplianceDocuments")(search_compliance_documents)
mcp.tool(name="generateQuoteSummary")(generate_quote_summary)


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    run_server(mcp, settings)
