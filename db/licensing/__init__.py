"""
Licensing module for feature gating.

Provides Pro license resolution, feature access control and activation.
"""

from db.licensing.errors import UpgradeRequiredError, SubscriptionExpiredError
from db.licensing.feature_gate import FeatureGate, FEATURE_PLAN_REQUIREMENTS
from db.licensing.license_manager import LicenseManager, get_license_manager, require_feature
from db.licensing.subscription import SubscriptionRecord

__all__ = [
    "LicenseManager",
    "get_license_manager",
    "require_feature",
    "FeatureGate",
    "FEATURE_PLAN_REQUIREMENTS",
    "SubscriptionRecord",
    "UpgradeRequiredError",
    "SubscriptionExpiredError",
]
