"""
Entitlement providers consulted by the feature gate, in priority order.

Each provider answers ALLOW, DENY or ABSTAIN for an organization; the gate
stops at the first answer that is not ABSTAIN.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from db.licensing.lock_marker import LockMarkerStore
from db.licensing.resolver import LicenseResolver
from db.licensing.subscription import SubscriptionRecord, SubscriptionStatus, subscription_status
from db.licensing.timeutil import utcnow


class Decision(Enum):
    ALLOW = "allow"
    DENY = "deny"
    ABSTAIN = "abstain"


class DenialKind(Enum):
    EXPIRED = "expired"
    NEVER_SUBSCRIBED = "never-subscribed"


@dataclass(frozen=True)
class ProviderVerdict:
    decision: Decision
    kind: Optional[DenialKind] = None

    @classmethod
    def allow(cls) -> 'ProviderVerdict':
        return cls(Decision.ALLOW)

    @classmethod
    def abstain(cls) -> 'ProviderVerdict':
        return cls(Decision.ABSTAIN)

    @classmethod
    def deny(cls, kind: DenialKind) -> 'ProviderVerdict':
        return cls(Decision.DENY, kind)


class EntitlementProvider:
    """Interface for one source of Pro entitlement."""

    name = "provider"

    def evaluate(self, record: Optional[SubscriptionRecord]) -> ProviderVerdict:
        raise NotImplementedError


class LockMarkerProvider(EntitlementProvider):
    """Destructive activation marker on the local filesystem."""

    name = "lock"

    def __init__(self, lock_store: LockMarkerStore):
        self.lock_store = lock_store

    def evaluate(self, record):
        if self.lock_store.exists():
            return ProviderVerdict.allow()
        return ProviderVerdict.abstain()


class LicenseFileProvider(EntitlementProvider):
    """license.json, through the resolver's cached state."""

    name = "license_file"

    def __init__(self, resolver: LicenseResolver):
        self.resolver = resolver

    def evaluate(self, record):
        if self.resolver.is_pro_enabled():
            return ProviderVerdict.allow()
        return ProviderVerdict.abstain()


class SubscriptionProvider(EntitlementProvider):
    """The organization's plan and expiry in the database."""

    name = "subscription"

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def evaluate(self, record):
        status = subscription_status(record, self.clock())
        if status is SubscriptionStatus.ACTIVE:
            return ProviderVerdict.allow()
        if status is SubscriptionStatus.EXPIRED:
            return ProviderVerdict.deny(DenialKind.EXPIRED)
        return ProviderVerdict.deny(DenialKind.NEVER_SUBSCRIBED)
