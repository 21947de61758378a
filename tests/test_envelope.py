import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.envelope import (
    Failure,
    Success,
    ToolSpec,
    ValidationError,
    invoke_tool,
    require_guid,
    require_text,
    serialize,
    to_camel,
    to_wire,
)
from core.models import QuoteTotals

from conftest import NIL_GUID, QUOTE_ID

SPEC = ToolSpec(
    name="demoTool",
    validation_message="Invalid parameter: Id must not be empty.",
    error_prefix="Error running demo",
)


def test_to_camel():
    assert to_camel("business_unit_id") == "businessUnitId"
    assert to_camel("success") == "success"
    assert to_camel("max_lead_time") == "maxLeadTime"


@pytest.mark.parametrize("value", [None, "", "   "])
def test_require_text_rejects_blank(value):
    with pytest.raises(ValidationError):
        require_text(value)


@pytest.mark.parametrize("value", [None, "", NIL_GUID, "not-a-guid"])
def test_require_guid_rejects_invalid(value):
    with pytest.raises(ValidationError):
        require_guid(value)


@pytest.mark.parametrize("value", [NIL_GUID, f"  {NIL_GUID}  ", "{00000000-0000-0000-0000-000000000000}"])
def test_require_text_rejects_nil_guid(value):
    with pytest.raises(ValidationError):
        require_text(value)


@pytest.mark.parametrize("value", ["Contoso AG", "opp-7", QUOTE_ID])
def test_require_text_accepts_other_text(value):
    assert require_text(value) == value


def test_require_guid_returns_canonical_form():
    assert require_guid(QUOTE_ID.upper()) == QUOTE_ID


def test_invalid_identifier_skips_fetch():
    calls = []

    response = invoke_tool(SPEC, "", lambda key: calls.append(key), lambda key, _: {"id": key})

    assert isinstance(response, Failure)
    assert response.message == SPEC.validation_message
    assert calls == []


def test_success_carries_payload_and_timestamp():
    before = datetime.now(timezone.utc)
    response = invoke_tool(SPEC, "abc", lambda key: 2, lambda key, n: {"item_count": n, "id": key})
    after = datetime.now(timezone.utc)

    assert isinstance(response, Success)
    assert response.payload == {"itemCount": 2, "id": "abc"}
    assert before <= response.timestamp <= after


def test_exception_in_fetch_becomes_failure():
    def fetch(key):
        raise ConnectionError("backend unreachable")

    response = invoke_tool(SPEC, "abc", fetch, lambda key, _: {})

    assert isinstance(response, Failure)
    assert response.message == "Error running demo: backend unreachable"


def test_exception_in_derive_becomes_failure():
    response = invoke_tool(SPEC, "abc", None, lambda key, _: {"ratio": 1 / 0})

    assert not response.success
    assert response.message.startswith("Error running demo: ")


def test_unserializable_payload_becomes_failure():
    response = invoke_tool(SPEC, "abc", None, lambda key, _: {"tags": {"a", "b"}})

    assert isinstance(response, Failure)
    assert response.message.startswith("Error running demo: ")
    wire = json.loads(serialize(response))
    assert wire["success"] is False
    assert wire["error"] == response.message


def test_failure_fields_on_every_failure():
    spec = ToolSpec("x", "bad id", "boom", failure_fields={"is_valid": False})

    invalid = to_wire(invoke_tool(spec, None, None, lambda k, _: {}))
    broken = to_wire(invoke_tool(spec, "abc", lambda k: 1 / 0, lambda k, _: {}))

    assert invalid["isValid"] is False and invalid["error"] == "bad id"
    assert broken["isValid"] is False and broken["error"].startswith("boom: ")


def test_wire_shape_success():
    stamp = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
    wire = to_wire(Success({"crm_user": {"user_id": "u1"}, "rows": [{"unit_price": Decimal("12.50")}]}, stamp))

    assert list(wire)[0] == "success"
    assert list(wire)[-1] == "timestamp"
    assert wire["success"] is True
    assert wire["crmUser"] == {"userId": "u1"}
    assert wire["rows"] == [{"unitPrice": 12.5}]
    assert wire["timestamp"] == "2026-10-18T09:30:00.000Z"


def test_wire_shape_failure():
    wire = to_wire(Failure("nope", datetime(2026, 1, 1, tzinfo=timezone.utc)))
    assert wire == {"success": False, "error": "nope", "timestamp": "2026-01-01T00:00:00.000Z"}


def test_dataclass_and_decimal_serialization():
    totals = QuoteTotals(
        subtotal=Decimal("2000.00"),
        total_discount=Decimal("100"),
        net_total=Decimal("1900"),
        tax_rate=19,
        tax_amount=Decimal("361.0000"),
        grand_total=Decimal("2261.0000"),
    )
    wire = to_wire(Success({"summary": totals}, datetime.now(timezone.utc)))

    assert wire["summary"]["subtotal"] == 2000
    assert wire["summary"]["taxAmount"] == 361
    assert wire["summary"]["grandTotal"] == 2261
    assert wire["summary"]["currency"] == "EUR"


def test_serialize_is_indented_json():
    text = serialize(Success({"name": "Müller GmbH"}, datetime.now(timezone.utc)))

    assert "\n  \"success\": true" in text
    assert "Müller GmbH" in text
    assert json.loads(text)["name"] == "Müller GmbH"
