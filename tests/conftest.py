from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from core.models import (
    CallContext,
    IdentityRecord,
    OpportunityProductRecord,
    OpportunityRecord,
)

OPPORTUNITY_ID = "a1b2c3d4-1111-4222-8333-444455556666"
QUOTE_ID = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"
LEAD_ID = "9c5b94b1-35ad-49bb-b118-8e8fc24abf80"
NIL_GUID = "00000000-0000-0000-0000-000000000000"

IDENTITY = IdentityRecord(
    user_id="11111111-2222-3333-4444-555555555555",
    business_unit_id="66666666-7777-8888-9999-000000000000",
    organization_id="aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee",
)


class FakeCrm:
    """CrmAccessor double that counts every call and can be told to fail."""

    def __init__(
        self,
        opportunity: Optional[OpportunityRecord] = None,
        products: Optional[list] = None,
        error: Optional[Exception] = None,
    ):
        self.opportunity = opportunity or OpportunityRecord(
            opportunity_id=OPPORTUNITY_ID,
            name="Fleet renewal",
            estimated_value=Decimal("150000"),
            close_probability=75,
            step_name="3-Propose",
            estimated_close_date=datetime(2026, 12, 15, tzinfo=timezone.utc),
            status_code=1,
            status_label="In Progress",
            created_on=datetime(2026, 9, 1, 8, 30, tzinfo=timezone.utc),
            modified_on=datetime(2026, 10, 10, 14, 5, tzinfo=timezone.utc),
        )
        self.products = products if products is not None else [
            OpportunityProductRecord(
                product_id="p-1", description="Product A", price_per_unit=Decimal("100"),
                quantity=Decimal("10"), base_amount=Decimal("1000"),
            ),
            OpportunityProductRecord(
                product_id="p-2", description="Product B", price_per_unit=Decimal("200"),
                quantity=Decimal("5"), base_amount=Decimal("1000"),
            ),
        ]
        self.error = error
        self.calls = Counter()
        self.opened = 0
        self.released = 0

    def _hit(self, name: str) -> None:
        self.calls[name] += 1
        if self.error is not None:
            raise self.error

    def identity_lookup(self) -> IdentityRecord:
        self._hit("identity_lookup")
        return IDENTITY

    def fetch_opportunity(self, opportunity_id: str) -> OpportunityRecord:
        self._hit("fetch_opportunity")
        return self.opportunity

    def fetch_opportunity_products(self, opportunity_id: str) -> list:
        self._hit("fetch_opportunity_products")
        return list(self.products)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def factory(self, context: CallContext):
        @contextmanager
        def scope():
            self.opened += 1
            try:
                yield self
            finally:
                self.released += 1

        return scope()


@pytest.fixture
def fake_crm() -> FakeCrm:
    return FakeCrm()


@pytest.fixture
def caller() -> CallContext:
    return CallContext(user_name="Dana Fischer", user_id="oid-123", bearer_token="user-token")
