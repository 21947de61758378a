# =============================================================================
# main.py  —  Entry Point for the Sales MCP Tool Services
# =============================================================================
#
# HOW TO RUN:
#   uv run python main.py lead
#   uv run python main.py opportunity --port 8001
#   uv run python main.py quote --transport stdio
#
# WHAT HAPPENS:
#   1. Environment variables are loaded (.env via python-dotenv)
#   2. Logging is configured (STDERR, [MCP] prefix)
#   3. The chosen FastMCP server is started on the configured transport
#
# THE THREE SERVICES:
#   lead         → getCompanyProfile, validateLeadData,
#                  getEngagementHistory, calculateLeadScore
#   opportunity  → getPricingInformation, queryProducts,
#                  searchDocumentsForCustomer, getOpportunityInsights
#   quote        → getProductAvailability, calculateDiscountRange,
#                  searchComplianceDocuments, generateQuoteSummary
#
#   Each service is deployed on its own; they share core/ but no state.
# =============================================================================

import argparse
import dataclasses
import importlib

from core.config import load_settings
from tools.common import configure_logging, run_server

SERVICES = {
    "lead": "tools.lead_server",
    "opportunity": "tools.opportunity_server",
    "quote": "tools.quote_server",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one of the sales MCP tool services.")
    parser.add_argument("service", choices=sorted(SERVICES), help="Which service to start.")
    parser.add_argument("--transport", choices=("http", "streamable-http", "sse", "stdio"),
                        help="Override MCP_TRANSPORT.")
    parser.add_argument("--host", help="Override MCP_HOST.")
    parser.add_argument("--port", type=int, help="Override MCP_PORT.")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    settings = load_settings()
    overrides = {
        name: value
        for name, value in (("transport", args.transport), ("host", args.host), ("port", args.port))
        if value is not None
    }
    settings = dataclasses.replace(settings, **overrides)
    configure_logging(settings.log_level)

    module = importlib.import_module(SERVICES[args.service])
    if hasattr(module, "configure"):
        module.configure(settings)
    run_server(module.mcp, settings)


if __name__ == "__main__":
    main()
