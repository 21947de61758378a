# =============================================================================
# core/lead.py  —  Lead Qualification Logic
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Backs the four lead-qualification tools:
#     - get_company_profile     basic firmographics for a company name
#     - validate_lead_data      formal/qualitative checks for a lead
#     - get_engagement_history  summary of past interactions with a lead
#     - calculate_lead_score    score from historical patterns
#
# MOCK DATA:
#   None of these tools talks to an external system yet.  The data below is a
#   placeholder with a clean interface: swapping in a real source means
#   replacing a fetch function here, not touching the server or envelope.
# =============================================================================

from typing import Any, Optional

from core.envelope import ToolResponse, ToolSpec, invoke_tool, require_guid, require_text, utc_now
from core.models import CallContext, ValidationReport

COMPANY_PROFILE = ToolSpec(
    name="getCompanyProfile",
    validation_message="Invalid parameter: company name must not be empty.",
    error_prefix="Error retrieving company information",
)

VALIDATE_LEAD = ToolSpec(
    name="validateLeadData",
    validation_message="Invalid parameter: LeadId must not be empty.",
    error_prefix="Error validating lead",
    failure_fields={"is_valid": False},
)

ENGAGEMENT_HISTORY = ToolSpec(
    name="getEngagementHistory",
    validation_message="Invalid parameter: LeadId must not be empty.",
    error_prefix="Error retrieving engagement history",
)

LEAD_SCORE = ToolSpec(
    name="calculateLeadScore",
    validation_message="Invalid parameter: LeadId must not be empty.",
    error_prefix="Error calculating lead score",
)

CHECKED_CRITERIA = [
    "Contact details complete",
    "Company affiliation present",
    "E-mail format valid",
    "Phone number plausible",
    "Mandatory fields filled",
]

# Quality score when no validation error was found, and when at least one was.
SCORE_CLEAN = 85
SCORE_WITH_ERRORS = 45


def check_lead(lead_id: str) -> ValidationReport:
    """Run the formal lead checks.

    Placeholder: no rule fires yet, so every lead passes.
    """
    return ValidationReport()


def quality_score(report: ValidationReport) -> int:
    return SCORE_CLEAN if report.is_valid else SCORE_WITH_ERRORS


# -----------------------------------------------------------------------------
# Tools
# -----------------------------------------------------------------------------
def get_company_profile(name: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Basic information about a company (industry, size, founding year)."""

    def derive(company: str, _: Any) -> dict[str, Any]:
        return {
            "company_name": company,
            "industry": "Technology",
            "employees": "50-200",
            "founded_year": 2010,
            "description": f"Basic information for company: {company}",
            "sources": ["Internal database", "Public registers"],
            "last_updated": utc_now(),
            "confidence": 0.85,
        }

    return invoke_tool(COMPANY_PROFILE, name, None, derive, context, validate=require_text)


def validate_lead_data(lead_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Check a lead against formal and qualitative criteria."""

    def derive(key: str, report: ValidationReport) -> dict[str, Any]:
        return {
            "lead_id": key,
            "is_valid": report.is_valid,
            "quality_score": quality_score(report),
            "errors": list(report.errors),
            "warnings": list(report.warnings),
            "checked_criteria": list(CHECKED_CRITERIA),
        }

    return invoke_tool(VALIDATE_LEAD, lead_id, check_lead, derive, context, validate=require_guid)


def get_engagement_history(lead_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Collect the previous interactions (mails, calls, meetings) with a lead."""

    def derive(key: str, _: Any) -> dict[str, Any]:
        return {"lead_id": key, "summary": f"Previous interactions for lead with ID: {key}"}

    return invoke_tool(ENGAGEMENT_HISTORY, lead_id, None, derive, context, validate=require_guid)


def calculate_lead_score(lead_id: Optional[str], context: Optional[CallContext] = None) -> ToolResponse:
    """Score a lead from historical patterns and predefined criteria."""

    def derive(key: str, _: Any) -> dict[str, Any]:
        return {"lead_id": key, "summary": f"Lead score for lead with ID: {key}"}

    return invoke_tool(LEAD_SCORE, lead_id, None, derive, context, validate=require_guid)
