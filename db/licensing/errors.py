"""
Exceptions raised by the licensing and feature-gating layer.

Only the enforcement point raises; every lookup (lock marker, license file,
subscription record) reports failure through its return value instead.
"""


class LicensingError(Exception):
    """Base exception for licensing errors."""
    pass


class UpgradeRequiredError(LicensingError):
    """
    Raised when a Pro feature is used by an organization without entitlement.

    Distinct from a generic authorization failure so that callers can render
    an upgrade prompt.

    Attributes:
        feature_name: The gated feature that was requested
        message: User-friendly error message with upgrade instructions
    """

    subscription_expired = False

    def __init__(self, feature_name: str, message: str = None):
        self.feature_name = feature_name

        if message is None:
            message = (
                "This feature requires a Pro upgrade. If you previously activated, "
                "the lock file may be missing. You must purchase again."
            )

        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {
            "message": self.message,
            "requiresUpgrade": True,
            "feature": self.feature_name,
        }
        if self.subscription_expired:
            payload["subscriptionExpired"] = True
        return payload


class SubscriptionExpiredError(UpgradeRequiredError):
    """Raised when the organization had a Pro subscription that has lapsed."""

    subscription_expired = True

    def __init__(self, feature_name: str, message: str = None):
        if message is None:
            message = "Your Pro subscription has expired. Please renew to access this feature."
        super().__init__(feature_name, message)


class InvalidCredentialError(LicensingError):
    """Raised when an activation credential is missing or not a finite number."""

    def __init__(self, message: str = "License key must be a valid number"):
        self.message = message
        super().__init__(message)


class IllegalTransitionError(LicensingError):
    """Raised when an activation attempt is moved along an edge that does not exist."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move activation from {current.value} to {target.value}")
