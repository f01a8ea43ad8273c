"""
Tests for subscription classification.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace
import uuid

import pytest

from db.licensing.subscription import (
    SubscriptionRecord,
    SubscriptionStatus,
    subscription_status,
    is_entitled,
)
from tests.utils.seed import FIXED_NOW


def record(**kwargs):
    kwargs.setdefault("organization_id", "org-1")
    return SubscriptionRecord(**kwargs)


class TestSubscriptionStatus:

    def test_no_record(self):
        assert subscription_status(None, FIXED_NOW) is SubscriptionStatus.NEVER_SUBSCRIBED

    def test_basic_plan(self):
        assert subscription_status(record(plan="BASIC"), FIXED_NOW) is SubscriptionStatus.NEVER_SUBSCRIBED

    def test_basic_plan_with_past_expiry_is_not_expired(self):
        lapsed = record(plan="BASIC", subscription_expiry=FIXED_NOW - timedelta(days=1))

        assert subscription_status(lapsed, FIXED_NOW) is SubscriptionStatus.NEVER_SUBSCRIBED

    def test_pro_without_expiry(self):
        assert subscription_status(record(plan="PRO"), FIXED_NOW) is SubscriptionStatus.ACTIVE

    @pytest.mark.parametrize("offset,expected", [
        (timedelta(days=30), SubscriptionStatus.ACTIVE),
        (timedelta(seconds=0), SubscriptionStatus.ACTIVE),
        (timedelta(seconds=-1), SubscriptionStatus.EXPIRED),
    ])
    def test_pro_with_expiry(self, offset, expected):
        pro = record(plan="PRO", subscription_expiry=FIXED_NOW + offset)

        assert subscription_status(pro, FIXED_NOW) is expected

    def test_naive_expiry_is_treated_as_utc(self):
        naive = datetime(2024, 3, 15, 11, 0, 0)

        assert subscription_status(record(plan="PRO", subscription_expiry=naive), FIXED_NOW) is SubscriptionStatus.EXPIRED

    def test_is_entitled(self):
        assert is_entitled(record(plan="PRO"), FIXED_NOW)
        assert not is_entitled(record(plan="BASIC"), FIXED_NOW)


class TestSubscriptionRecord:

    def test_from_organization(self):
        org_id = uuid.uuid4()
        organization = SimpleNamespace(
            id=org_id,
            name="Acme",
            plan=None,
            subscription_expiry=None,
            payment_status="PENDING",
            payment_reference="TXN-1"
        )

        snapshot = SubscriptionRecord.from_organization(organization)

        assert snapshot.organization_id == str(org_id)
        assert snapshot.plan == "BASIC"
        assert snapshot.payment_reference == "TXN-1"

    def test_to_dict(self):
        snapshot = record(name="Acme", plan="PRO", subscription_expiry=FIXED_NOW, payment_status="VERIFIED")

        assert snapshot.to_dict() == {
            "id": "org-1",
            "name": "Acme",
            "plan": "PRO",
            "subscriptionExpiry": "2024-03-15T12:00:00.000Z",
            "paymentStatus": "VERIFIED",
            "paymentReference": None,
        }
