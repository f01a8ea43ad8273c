"""
License Controller

Flask route handlers for license status, manual re-checks, destructive
activation and feature access queries.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import g, request

from db.licensing.activation import ActivationOutcome
from db.licensing.license_manager import LicenseManager, get_license_manager
from db.licensing.subscription import SubscriptionRecord
from db.repositories.unit_of_work import get_unit_of_work

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = 'X-Organization-Id'

ACTIVATION_STATUS_CODES = {
    ActivationOutcome.ACTIVATED: 200,
    ActivationOutcome.INVALID_CREDENTIAL: 400,
    ActivationOutcome.INVALID_KEY: 400,
    ActivationOutcome.NO_ORGANIZATION: 400,
    ActivationOutcome.ORGANIZATION_NOT_FOUND: 404,
    ActivationOutcome.LOCK_FAILED: 500,
    ActivationOutcome.ROLLED_BACK: 500,
    ActivationOutcome.ERROR: 500,
}


def load_request_organization() -> Optional[SubscriptionRecord]:
    """
    Resolve the caller's organization into ``g.organization``.

    Authentication is handled upstream; here the organization id arrives in
    the X-Organization-Id header.
    """
    g.organization_id = request.headers.get(ORGANIZATION_HEADER)
    g.organization = None
    if not g.organization_id:
        return None

    try:
        with get_unit_of_work() as uow:
            organization = uow.organizations.get_by_id(g.organization_id)
            if organization is not None:
                g.organization = SubscriptionRecord.from_organization(organization)
    except Exception as e:
        logger.error(f"Failed to load organization {g.organization_id}: {e}")
    return g.organization


class LicenseController:
    """Handlers for /api/admin/license-* and /api/features endpoints."""

    def __init__(self, manager: Optional[LicenseManager] = None):
        self._manager = manager

    @property
    def manager(self) -> LicenseManager:
        return self._manager or get_license_manager()

    # ===== LICENSE STATE =====

    def license_status(self) -> Tuple[Dict[str, Any], int]:
        """
        GET /api/admin/license-status

        Re-checks the license and returns the resolved state.
        """
        try:
            return self.manager.get_license_status(refresh=True), 200
        except Exception as e:
            logger.error(f"License status failed: {e}")
            return {"message": str(e)}, 500

    def license_check(self) -> Tuple[Dict[str, Any], int]:
        """
        POST /api/admin/license-check

        Manual re-check of the lock file and license.json (no database updates).
        """
        try:
            status = self.manager.get_license_status(refresh=True)
            return {
                "success": True,
                "licenseState": status,
                "message": (
                    "Pro features active (image-based activation)" if status["isPro"]
                    else "Basic features active (no Pro license in image)"
                )
            }, 200
        except Exception as e:
            logger.error(f"License check failed: {e}")
            return {"message": str(e)}, 500

    # ===== ACTIVATION =====

    def activate_license(self) -> Tuple[Dict[str, Any], int]:
        """
        POST /api/admin/activate-license

        Body: {"licenseKey": <number or numeric string>}
        """
        try:
            data = request.get_json(silent=True) or {}
            result = self.manager.activation.activate(data.get('licenseKey'), g.get('organization_id'))
            return result.to_dict(), ACTIVATION_STATUS_CODES[result.outcome]
        except Exception as e:
            logger.error(f"[Activate License] Error: {e}", exc_info=True)
            return {"message": str(e) or "Failed to activate license"}, 500

    # ===== FEATURE ACCESS =====

    def feature_access(self) -> Tuple[Dict[str, Any], int]:
        """
        GET /api/features

        Plan state and per-feature access for the caller's organization.
        """
        record = self.manager.current_organization()
        return self.manager.gate.feature_access(record), 200

    def feature_check(self, feature_name: str) -> Tuple[Dict[str, Any], int]:
        """
        GET /api/features/<feature_name>

        Raises UpgradeRequiredError (rendered as 403) when access is denied.
        """
        decision = self.manager.gate.enforce(feature_name, self.manager.current_organization())
        return decision.to_dict(), 200
