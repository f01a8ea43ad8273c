"""
Organization subscription record, the lowest-priority entitlement source.

The gate never queries the database itself; callers load the organization
inside a unit of work and pass a SubscriptionRecord snapshot in.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from db.licensing.timeutil import utcnow, as_utc, isoformat_z


class SubscriptionStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    NEVER_SUBSCRIBED = "never-subscribed"


@dataclass(frozen=True)
class SubscriptionRecord:
    """Plan fields of one organization, detached from the session."""
    organization_id: Optional[str]
    name: Optional[str] = None
    plan: str = 'BASIC'
    subscription_expiry: Optional[datetime] = None
    payment_status: Optional[str] = None
    payment_reference: Optional[str] = None

    @classmethod
    def from_organization(cls, organization) -> 'SubscriptionRecord':
        return cls(
            organization_id=str(organization.id) if organization.id is not None else None,
            name=organization.name,
            plan=organization.plan or 'BASIC',
            subscription_expiry=organization.subscription_expiry,
            payment_status=organization.payment_status,
            payment_reference=organization.payment_reference
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.organization_id,
            'name': self.name,
            'plan': self.plan,
            'subscriptionExpiry': isoformat_z(self.subscription_expiry) if self.subscription_expiry else None,
            'paymentStatus': self.payment_status,
            'paymentReference': self.payment_reference,
        }


def subscription_status(record: Optional[SubscriptionRecord], now: Optional[datetime] = None) -> SubscriptionStatus:
    """Classify a record: active Pro, lapsed Pro, or never Pro."""
    if record is None or record.plan != 'PRO':
        return SubscriptionStatus.NEVER_SUBSCRIBED

    if record.subscription_expiry is not None:
        now = now or utcnow()
        if as_utc(now) > as_utc(record.subscription_expiry):
            return SubscriptionStatus.EXPIRED

    return SubscriptionStatus.ACTIVE


def is_entitled(record: Optional[SubscriptionRecord], now: Optional[datetime] = None) -> bool:
    return subscription_status(record, now) is SubscriptionStatus.ACTIVE
