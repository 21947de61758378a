# =============================================================================
# tools/lead_server.py  —  FastMCP server: Lead Qualification
# =============================================================================
#
# TOOLS:
#   getCompanyProfile     → core.lead.get_company_profile
#   validateLeadData      → core.lead.validate_lead_data
#   getEngagementHistory  → core.lead.get_engagement_history
#   calculateLeadScore    → core.lead.calculate_lead_score
#
# Each tool here is a thin wrapper: build the CallContext, log the request,
# call core/, log and return the serialized envelope.  No business logic.
#
# RUNNING THIS SERVER:
#   python main.py lead          (HTTP, see core/config.py for host/port)
#   python -m tools.lead_server  (same, settings from the environment)
# =============================================================================

from fastmcp import FastMCP

from core import lead
from core.config import load_settings
from tools.common import configure_logging, current_context, log_request, log_response, run_server

mcp = FastMCP("sales-lead-qualification")


def get_company_profile(name: str) -> str:
    """Retrieve basic information about a company from web or internal sources.

    Args:
        name: The company name.

    Returns:
        JSON with industry, size, founding year, description and sources.
        "success": false with an "error" message if the name is empty.
    """
    context = current_context()
    log_request("getCompanyProfile", context, name=name)
    return log_response("getCompanyProfile", lead.get_company_profile(name, context))


def validate_lead_data(leadId: str) -> str:
    """Check formal and qualitative criteria for a lead.

    Args:
        leadId: GUID of the lead.

    Returns:
        JSON with isValid, qualityScore, errors, warnings and the list of
        checked criteria.
    """
    context = current_context()
    log_request("validateLeadData", context, leadId=leadId)
    return log_response("validateLeadData", lead.validate_lead_data(leadId, context))


def get_engagement_history(leadId: str) -> str:
    """Summarize all previous interactions (mails, calls, meetings) with a lead.

    Args:
        leadId: GUID of the lead.
    """
    context = current_context()
    log_request("getEngagementHistory", context, leadId=leadId)
    return log_response("getEngagementHistory", lead.get_engagement_history(leadId, context))


def calculate_lead_score(leadId: str) -> str:
    """Score a lead from historical patterns and predefined criteria.

    Args:
        leadId: GUID of the lead.
    """
    context = current_context()
    log_request("calculateLeadScore", context, leadId=leadId)
    return log_response("calculateLeadScore", lead.calculate_lead_score(leadId, context))


mcp.tool(name="getCompanyProfile")(get_company_profile)
mcp.tool(name="validateLeadData")(validate_lead_data)
mcp.tool(name="getEngagementHistory")(get_engagement_history)
mcp.tool(name="calculateLeadScore")(calculate_lead_score)


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    run_server(mcp, settings)
