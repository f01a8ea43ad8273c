"""
In-memory Pro entitlement state resolved from local evidence.

Priority: lock marker (destructive activation) > license.json (image-based).
The state is a read-through cache: is_pro_enabled() re-validates lazily once
the freshness window has passed, and only one caller performs the refresh.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from db.licensing.descriptor import LicenseDescriptorReader
from db.licensing.lock_marker import LockMarkerStore
from db.licensing.timeutil import utcnow, isoformat_z

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW = timedelta(minutes=5)


@dataclass
class EntitlementState:
    """Resolved entitlement. ``is_pro`` implies ``is_valid``."""
    is_valid: bool = False
    is_pro: bool = False
    license_data: Optional[Dict[str, Any]] = None
    last_checked: Optional[datetime] = None
    reason: Optional[str] = None
    verification: Optional[str] = field(default=None, compare=False)

    @property
    def source(self) -> Optional[str]:
        if not self.license_data:
            return None
        return self.license_data.get('source', 'license_file')

    def to_status_dict(self) -> Dict[str, Any]:
        data = self.license_data or {}
        return {
            'isValid': self.is_valid,
            'isPro': self.is_pro,
            'licenseId': data.get('id') or None,
            'product': data.get('product') or None,
            'tier': data.get('tier') or None,
            'validity': data.get('validity') or None,
            'lastChecked': isoformat_z(self.last_checked) if self.last_checked else None,
            'source': self.source,
        }


class LicenseResolver:
    """Combines lock marker and license.json evidence into one cached state."""

    def __init__(
        self,
        lock_store: LockMarkerStore,
        reader: LicenseDescriptorReader,
        freshness_window: timedelta = FRESHNESS_WINDOW,
        clock: Callable[[], datetime] = utcnow
    ):
        self.lock_store = lock_store
        self.reader = reader
        self.freshness_window = freshness_window
        self.clock = clock
        self._state = EntitlementState()
        self._state_lock = threading.Lock()
        self._refresh_lock = threading.Lock()

    def check_license(self) -> bool:
        """
        Re-resolve the entitlement from disk and update the cached state.

        Never raises; any failure leaves the state invalid.

        Returns:
            True if Pro features are active
        """
        try:
            state = self._resolve()
        except Exception as e:
            logger.error(f"[License] Error checking license: {e}")
            state = self._invalid('error')

        with self._state_lock:
            self._state = state
        return state.is_pro and state.is_valid

    def is_pro_enabled(self) -> bool:
        """Cached Pro status, re-checked once the freshness window has elapsed."""
        if self._is_stale():
            with self._refresh_lock:
                # Another caller may have refreshed while we waited
                if self._is_stale():
                    self.check_license()

        with self._state_lock:
            return self._state.is_pro and self._state.is_valid

    def get_state(self) -> EntitlementState:
        """Copy of the cached state, safe to hand to reporting code."""
        with self._state_lock:
            return copy.deepcopy(self._state)

    def invalidate(self):
        """Force the next is_pro_enabled() call to re-check."""
        with self._state_lock:
            self._state.last_checked = None

    def initialize(self) -> bool:
        """Run the startup license check."""
        logger.info("[License] Initializing license check...")
        result = self.check_license()
        if result:
            logger.info(f"[License] ✅ Pro features unlocked via {self.get_state().source}")
        else:
            logger.info("[License] ⚠️  Pro features locked - No valid license found")
        return result

    def _is_stale(self) -> bool:
        with self._state_lock:
            last_checked = self._state.last_checked
        return last_checked is None or self.clock() - last_checked >= self.freshness_window

    def _resolve(self) -> EntitlementState:
        if self.lock_store.exists():
            logger.info("[License] ✅ Lock file found - Pro features active (destructive activation)")
            return EntitlementState(
                is_valid=True,
                is_pro=True,
                license_data={'source': 'lock', 'activated': True},
                last_checked=self.clock()
            )

        descriptor = self.reader.load()
        if descriptor is None:
            logger.info("[License] No lock file or valid license.json found. Pro features disabled.")
            return self._invalid('not-found')

        outcome = self.reader.validate(descriptor)
        if not outcome.accepted:
            logger.info(f"[License] License key rejected ({outcome.reason})")
            return self._invalid(outcome.reason)

        if not descriptor.is_pro_tier:
            logger.info("[License] License is not a Pro license")
            return self._invalid('tier-not-pro')

        logger.info(
            f"[License] ✅ Valid Pro license found: {descriptor.id or 'N/A'} "
            f"(product={descriptor.product}, tier={descriptor.tier}, validity={descriptor.validity or 'N/A'})"
        )
        license_data = descriptor.to_dict()
        license_data['source'] = 'license_file'
        return EntitlementState(
            is_valid=True,
            is_pro=True,
            license_data=license_data,
            last_checked=self.clock(),
            verification=outcome.status.value
        )

    def _invalid(self, reason: Optional[str]) -> EntitlementState:
        return EntitlementState(
            is_valid=False,
            is_pro=False,
            license_data=None,
            last_checked=self.clock(),
            reason=reason
        )
