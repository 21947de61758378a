# =============================================================================
# core/__init__.py
# =============================================================================
# This package contains ALL business logic for the sales tool services.
#
# CRITICAL ARCHITECTURAL RULE:
#   Nothing in this package imports FastMCP or any MCP transport code.
#   The envelope, the tool logic and the CRM accessor are plain Python you
#   can exercise from a REPL or a unit test without starting a server.
#
#   The only outward dependency is core/crm.py, which speaks HTTP to
#   Dataverse — and only when USE_LIVE_DATAVERSE=true.
# =============================================================================
