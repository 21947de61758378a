# =============================================================================
# tools/__init__.py
# =============================================================================
# This package contains the FastMCP servers, one per deployable service:
#
#   lead_server.py         lead qualification
#   opportunity_server.py  opportunity insights (CRM-backed)
#   quote_server.py        quote generation
#   common.py              logging, caller context, session bookkeeping
#
# ARCHITECTURAL ROLE:
#   tools/ is the "translation layer" between the MCP host and core/.
#   Each tool:
#     1. Builds a CallContext from the HTTP request
#     2. Calls one function in core/
#     3. Returns the serialized envelope (indented JSON string)
#
# WHAT TOOLS DO NOT DO:
#   - They do NOT contain business logic (that's in core/)
#   - They do NOT catch exceptions (the envelope in core/ already does)
#
# TOOL CONTRACT QUALITY:
#   The docstring of each tool is what the host's LLM reads to decide WHEN
#   to call it, so every tool documents its parameter and its return shape.
# =============================================================================
