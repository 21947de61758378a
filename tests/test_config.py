import pytest

from core.config import Settings, load_settings


def test_defaults_without_environment():
    settings = load_settings({})

    assert settings == Settings()
    assert settings.use_live_dataverse is False
    assert settings.resolved_scope is None
    assert (settings.host, settings.port, settings.transport) == ("0.0.0.0", 8000, "http")


def test_reads_azure_and_dataverse_settings():
    settings = load_settings({
        "AZURE_TENANT_ID": "tenant-1",
        "AZURE_CLIENT_ID": "client-1",
        "AZURE_CLIENT_SECRET": "secret-1",
        "DATAVERSE_URL": "https://contoso.crm4.dynamics.com/",
        "MCP_PORT": "9100",
        "HTTP_TIMEOUT_SECONDS": "5",
        "LOG_LEVEL": "debug",
    })

    assert settings.token_endpoint == "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
    assert settings.resolved_scope == "https://contoso.crm4.dynamics.com/.default"
    assert settings.port == 9100
    assert settings.http_timeout_seconds == 5.0
    assert settings.log_level == "DEBUG"


def test_explicit_scope_wins():
    settings = load_settings({
        "DATAVERSE_URL": "https://contoso.crm4.dynamics.com",
        "DATAVERSE_SCOPE": "https://contoso.crm4.dynamics.com/user_impersonation",
    })

    assert settings.resolved_scope == "https://contoso.crm4.dynamics.com/user_impersonation"


def test_client_secret_falls_back_to_app_service_variable():
    settings = load_settings({"MICROSOFT_PROVIDER_AUTHENTICATION_SECRET": "from-easy-auth"})
    assert settings.client_secret == "from-easy-auth"

    settings = load_settings({
        "AZURE_CLIENT_SECRET": "primary",
        "MICROSOFT_PROVIDER_AUTHENTICATION_SECRET": "from-easy-auth",
    })
    assert settings.client_secret == "primary"


@pytest.mark.parametrize(
    "raw, expected",
    [("true", True), ("TRUE", True), ("1", True), ("yes", True), (" on ", True),
     ("false", False), ("0", False), ("", False), ("maybe", False)],
)
def test_live_dataverse_flag(raw, expected):
    assert load_settings({"USE_LIVE_DATAVERSE": raw}).use_live_dataverse is expected
