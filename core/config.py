# =============================================================================
# core/config.py  —  Runtime Settings
# =============================================================================
#
# All configuration comes from environment variables, optionally loaded from
# a .env file at startup (python-dotenv).  Nothing else in core/ reads
# os.environ directly — it receives a Settings object instead.
#
# DATA SOURCE TOGGLE:
#   USE_LIVE_DATAVERSE=true   → CRM tools call the real Dataverse Web API
#                               (needs the Azure AD app settings below and a
#                               bearer token from the caller)
#   USE_LIVE_DATAVERSE=false  → CRM tools use deterministic mock records
#                               (offline development, demos, tests)
# =============================================================================

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, read once at startup."""

    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    dataverse_url: Optional[str] = None
    dataverse_scope: Optional[str] = None
    use_live_dataverse: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    transport: str = "http"
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @property
    def token_endpoint(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0/token"

    @property
    def resolved_scope(self) -> Optional[str]:
        if self.dataverse_scope:
            return self.dataverse_scope
        if self.dataverse_url:
            return f"{self.dataverse_url.rstrip('/')}/.default"
        return None


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def load_settings(environ: Optional[Mapping[str, str]] = None, use_dotenv: bool = True) -> Settings:
    """Build Settings from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ).
        use_dotenv: Load a .env file first.  Existing variables win.
    """
    if environ is None:
        if use_dotenv:
            load_dotenv()
        environ = os.environ

    return Settings(
        tenant_id=environ.get("AZURE_TENANT_ID"),
        client_id=environ.get("AZURE_CLIENT_ID"),
        client_secret=(
            environ.get("AZURE_CLIENT_SECRET")
            or environ.get("MICROSOFT_PROVIDER_AUTHENTICATION_SECRET")
        ),
        dataverse_url=environ.get("DATAVERSE_URL"),
        dataverse_scope=environ.get("DATAVERSE_SCOPE"),
        use_live_dataverse=_flag(environ.get("USE_LIVE_DATAVERSE")),
        host=environ.get("MCP_HOST", "0.0.0.0"),
        port=int(environ.get("MCP_PORT", "8000")),
        transport=environ.get("MCP_TRANSPORT", "http"),
        http_timeout_seconds=float(environ.get("HTTP_TIMEOUT_SECONDS", "30")),
        log_level=environ.get("LOG_LEVEL", "INFO").upper(),
    )
