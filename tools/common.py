# =============================================================================
# tools/common.py  —  Shared plumbing for the three FastMCP servers
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Everything the lead, opportunity and quote servers have in common:
#     1. Logging setup + the colored request/status/response log helpers
#     2. Building a CallContext from the current HTTP request
#     3. Session bookkeeping (MCP session ids seen by this process)
#     4. Turning a core ToolResponse into the JSON string the host receives
#     5. Running a server with the configured transport
#
# WHY STDERR FOR LOGS?
#   With the stdio transport, STDOUT *is* the MCP message stream.  Logging
#   there would corrupt the protocol.  STDERR is always safe, so we use it
#   for every transport.
#
# ANSI COLOR CODES:
#     - CYAN for incoming requests (tool name + parameters)
#     - GREEN for response JSON
#     - YELLOW for intermediate status messages
# =============================================================================

import base64
import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_headers

from core.config import Settings
from core.envelope import ToolResponse, serialize, to_wire
from core.models import CallContext

# ANSI color codes for terminal output
_CYAN = "\033[36m"     # Requests (tool calls with params)
_GREEN = "\033[32m"    # Responses (JSON output)
_YELLOW = "\033[33m"   # Status/progress messages
_RESET = "\033[0m"     # Reset to default terminal color

logger = logging.getLogger("mcp.tools")


def configure_logging(level: str = "INFO") -> None:
    """Send all logs to STDERR with the [MCP] prefix."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [MCP] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def log_request(tool_name: str, context: CallContext, **params: Any) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    logger.info(f"{_CYAN}{tool_name} called by {context.user_name} ({context.user_id}) with: {param_str}{_RESET}")


def log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logger.info(f"{_YELLOW}  → {message}{_RESET}")


def log_response(tool_name: str, response: ToolResponse) -> str:
    """Log the response as compact JSON in GREEN, then return it indented."""
    compact = json.dumps(to_wire(response), separators=(",", ":"), ensure_ascii=False)
    logger.info(f"{_GREEN}  ← {tool_name} response: {compact}{_RESET}")
    return serialize(response)


# =============================================================================
# Session bookkeeping
# =============================================================================
# Some MCP hosts expect the server to remember session ids between calls.
# The tools never look sessions up; we only record when each was last seen.
# =============================================================================
class SessionRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: dict[str, datetime] = {}

    def touch(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        with self._lock:
            self._seen[session_id] = datetime.now(timezone.utc)

    def last_seen(self, session_id: str) -> Optional[datetime]:
        with self._lock:
            return self._seen.get(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)


SESSIONS = SessionRegistry()


# =============================================================================
# CallContext from the HTTP request
# =============================================================================
def _token_claims(token: str) -> dict[str, Any]:
    """Read (NOT verify) the JWT payload.  Used for log context only."""
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    padded = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded.encode()))
    except ValueError:
        return {}
    return claims if isinstance(claims, dict) else {}


def context_from_headers(headers: dict[str, str]) -> CallContext:
    """Build the caller identity from request headers (lower-cased keys)."""
    auth = headers.get("authorization", "")
    token = auth[len("Bearer "):].strip() if auth.lower().startswith("bearer ") else None

    claims = _token_claims(token) if token else {}
    return CallContext(
        user_name=claims.get("name") or claims.get("preferred_username") or "Anonymous",
        user_id=claims.get("oid") or claims.get("sub") or "Unknown",
        bearer_token=token or None,
        session_id=headers.get("mcp-session-id"),
    )


def current_context() -> CallContext:
    """CallContext for the request being served (anonymous outside HTTP)."""
    headers = {k.lower(): v for k, v in get_http_headers(include_all=True).items()}
    context = context_from_headers(headers)
    SESSIONS.touch(context.session_id)
    return context


# =============================================================================
# Server runner
# =============================================================================
def run_server(mcp: FastMCP, settings: Settings) -> None:
    """Run `mcp` with the transport named in settings."""
    if settings.transport == "stdio":
        mcp.run(transport="stdio")
        return
    logger.info(
        "Starting %s on %s:%s (%s transport)",
        mcp.name, settings.host, settings.port, settings.transport,
    )
    mcp.run(transport=settings.transport, host=settings.host, port=settings.port)
