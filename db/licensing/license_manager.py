"""
License manager for feature gating and activation.

Owns the lock marker store, license file reader, resolver cache, feature gate
and activation service for one application instance. Pro entitlement can
come from (highest priority first):
1. The lock marker written by destructive activation
2. A license.json baked into the image or placed in License/
3. The organization's subscription record in the database
"""

import logging
from datetime import datetime, timedelta
from functools import wraps
from pathlib import Path
from typing import Callable, Optional, Sequence

from flask import current_app, g

from db.licensing.activation import ActivationService
from db.licensing.descriptor import LicenseDescriptorReader
from db.licensing.feature_gate import FeatureGate
from db.licensing.lock_marker import LockMarkerStore, CONTAINER_LICENSE_DIR
from db.licensing.providers import LockMarkerProvider, LicenseFileProvider, SubscriptionProvider
from db.licensing.resolver import LicenseResolver, FRESHNESS_WINDOW
from db.licensing.subscription import SubscriptionRecord
from db.licensing.timeutil import utcnow
from db.repositories.unit_of_work import get_unit_of_work

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'license_manager'


def _organization_from_request() -> Optional[SubscriptionRecord]:
    return g.get('organization')


class LicenseManager:
    """Wires the licensing components together for one application."""

    def __init__(
        self,
        secret: str,
        container_root: Path = CONTAINER_LICENSE_DIR,
        local_root: Optional[Path] = None,
        license_paths: Optional[Sequence[Path]] = None,
        freshness_window: timedelta = FRESHNESS_WINDOW,
        clock: Callable[[], datetime] = utcnow,
        uow_factory: Callable = get_unit_of_work,
        organization_loader: Callable[[], Optional[SubscriptionRecord]] = _organization_from_request,
        diagnostics: bool = False
    ):
        """Initialize the license manager.

        Args:
            secret: HMAC secret for license keys
            container_root: Container license directory (lock marker lives here when present)
            local_root: Local license directory fallback for the lock marker
            license_paths: Override for the license.json probe order
            freshness_window: How long a resolved state is trusted
            clock: Source of the current instant
            uow_factory: Unit of work factory used by activation
            organization_loader: Returns the current request's organization record
            diagnostics: Leak the expected activation key on failure (development only)
        """
        self.clock = clock
        self.organization_loader = organization_loader
        self.lock_store = LockMarkerStore(container_root=container_root, local_root=local_root, clock=clock)
        self.reader = LicenseDescriptorReader(secret, candidate_paths=license_paths, clock=clock)
        self.resolver = LicenseResolver(
            self.lock_store, self.reader, freshness_window=freshness_window, clock=clock
        )
        self.gate = FeatureGate([
            LockMarkerProvider(self.lock_store),
            LicenseFileProvider(self.resolver),
            SubscriptionProvider(clock=clock),
        ])
        self.activation = ActivationService(
            self.lock_store,
            resolver=self.resolver,
            uow_factory=uow_factory,
            clock=clock,
            diagnostics=diagnostics
        )

    def init_app(self, app):
        """Register on a Flask app and run the startup license check."""
        app.extensions[EXTENSION_KEY] = self
        self.resolver.initialize()

    def current_organization(self) -> Optional[SubscriptionRecord]:
        return self.organization_loader()

    def has_feature(self, feature_name: str, record: Optional[SubscriptionRecord] = None) -> bool:
        """Check if a feature is available to an organization.

        Args:
            feature_name: Name of the feature to check (e.g., 'SLA_MANAGER')
            record: Organization to check; defaults to the current request's organization

        Returns:
            True if feature is available, False otherwise
        """
        if record is None:
            record = self.current_organization()
        return self.gate.is_allowed(feature_name, record)

    def get_license_status(self, refresh: bool = True) -> dict:
        """Get current license status information.

        Args:
            refresh: Re-check the lock marker and license.json first
        """
        if refresh:
            self.resolver.check_license()
        status = self.resolver.get_state().to_status_dict()
        status['lockFile'] = self.lock_store.get_info() is not None
        return status

    def invalidate_cache(self):
        """Invalidate the cached entitlement.

        Call this after replacing license.json on disk.
        """
        self.resolver.invalidate()


def get_license_manager() -> LicenseManager:
    """Get the license manager registered on the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]


def require_feature(feature_name: str):
    """
    Decorator for Flask views that need a Pro feature.

    Raises UpgradeRequiredError (mapped to HTTP 403 by the app) when the
    current organization is not entitled.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            manager = get_license_manager()
            manager.gate.enforce(feature_name, manager.current_organization())
            return view(*args, **kwargs)
        return wrapper
    return decorator
