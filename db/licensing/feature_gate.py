"""
Feature gating for Pro capabilities.

Features requiring the PRO plan are listed in FEATURE_PLAN_REQUIREMENTS.
Anything not listed is available to every organization.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from db.licensing.errors import UpgradeRequiredError, SubscriptionExpiredError
from db.licensing.providers import Decision, DenialKind, EntitlementProvider
from db.licensing.subscription import SubscriptionRecord
from db.licensing.timeutil import isoformat_z

logger = logging.getLogger(__name__)

# Feature to plan mapping
FEATURE_PLAN_REQUIREMENTS = {
    'SLA_MANAGER': 'PRO',
    'SSO_INTEGRATION': 'PRO',
    'EXTERNAL_INTEGRATIONS': 'PRO',
    'ADVANCED_REPORTS': 'PRO',
    'EMAIL_AUTOMATION': 'PRO',
    'TEAMS_INTEGRATION': 'PRO',
    'AZURE_SENTINEL': 'PRO',
    'DOMAIN_RULES': 'PRO',
    'CUSTOM_ROLES': 'PRO',
}

FEATURE_DISPLAY_NAMES = {
    'SLA_MANAGER': 'SLA Management',
    'SSO_INTEGRATION': 'SSO Integration',
    'EXTERNAL_INTEGRATIONS': 'External Integrations',
    'ADVANCED_REPORTS': 'Advanced Reports',
    'EMAIL_AUTOMATION': 'Email Automation',
    'TEAMS_INTEGRATION': 'Microsoft Teams Integration',
    'AZURE_SENTINEL': 'Azure Sentinel Integration',
    'DOMAIN_RULES': 'Domain Rules',
    'CUSTOM_ROLES': 'Custom Roles',
}


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a feature check."""
    allowed: bool
    feature: str
    source: Optional[str] = None
    kind: Optional[DenialKind] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'feature': self.feature,
            'allowed': self.allowed,
            'source': self.source,
            'denial': self.kind.value if self.kind else None,
        }


class FeatureGate:
    """Decides whether an organization may use a feature."""

    def __init__(
        self,
        providers: Iterable[EntitlementProvider],
        requirements: Optional[Dict[str, str]] = None
    ):
        """
        Args:
            providers: Entitlement sources, highest priority first
            requirements: Feature to plan table; defaults to FEATURE_PLAN_REQUIREMENTS
        """
        self.providers: List[EntitlementProvider] = list(providers)
        self.requirements = dict(requirements if requirements is not None else FEATURE_PLAN_REQUIREMENTS)

    def is_required(self, feature_name: str) -> bool:
        """True if the feature needs the PRO plan."""
        return self.requirements.get(feature_name) == 'PRO'

    def check(self, feature_name: str, record: Optional[SubscriptionRecord]) -> GateDecision:
        if not self.is_required(feature_name):
            return GateDecision(allowed=True, feature=feature_name)

        for provider in self.providers:
            verdict = provider.evaluate(record)
            if verdict.decision is Decision.ALLOW:
                return GateDecision(allowed=True, feature=feature_name, source=provider.name)
            if verdict.decision is Decision.DENY:
                return GateDecision(
                    allowed=False,
                    feature=feature_name,
                    source=provider.name,
                    kind=verdict.kind or DenialKind.NEVER_SUBSCRIBED
                )

        return GateDecision(allowed=False, feature=feature_name, kind=DenialKind.NEVER_SUBSCRIBED)

    def is_allowed(self, feature_name: str, record: Optional[SubscriptionRecord]) -> bool:
        """Boolean helper for conditional business logic."""
        return self.check(feature_name, record).allowed

    def enforce(self, feature_name: str, record: Optional[SubscriptionRecord]) -> GateDecision:
        """
        Check a feature and raise if it is not available.

        Raises:
            SubscriptionExpiredError: The organization's Pro subscription lapsed
            UpgradeRequiredError: The organization never had Pro
        """
        decision = self.check(feature_name, record)
        if decision.allowed:
            return decision

        org_label = record.organization_id if record else 'no organization'
        logger.info(f"Feature {feature_name} denied for {org_label} ({decision.kind.value})")

        if decision.kind is DenialKind.EXPIRED:
            raise SubscriptionExpiredError(feature_name)
        if record is None:
            raise UpgradeRequiredError(feature_name, message="This feature requires a Pro upgrade.")
        raise UpgradeRequiredError(feature_name)

    def feature_access(self, record: Optional[SubscriptionRecord]) -> Dict[str, Any]:
        """Summary of plan state and per-feature access for one organization."""
        # Every gated feature needs the same plan, so one pass over the providers answers all of them
        probe = self._first_pro_decision(record)
        is_pro = probe.allowed if probe else True

        features = {}
        for feature_name in sorted(set(self.requirements) | set(FEATURE_DISPLAY_NAMES)):
            features[feature_name] = {
                'displayName': FEATURE_DISPLAY_NAMES.get(feature_name, feature_name),
                'requiredPlan': self.requirements.get(feature_name),
                'hasAccess': is_pro or not self.is_required(feature_name),
            }

        return {
            'plan': record.plan if record else 'BASIC',
            'isPro': is_pro,
            'isBasic': not is_pro,
            'source': probe.source if probe else None,
            'subscriptionExpired': bool(probe and probe.kind is DenialKind.EXPIRED),
            'subscriptionExpiry': (
                isoformat_z(record.subscription_expiry)
                if record and record.subscription_expiry else None
            ),
            'features': features,
        }

    def _first_pro_decision(self, record) -> Optional[GateDecision]:
        for feature_name in self.requirements:
            if self.is_required(feature_name):
                return self.check(feature_name, record)
        return None
