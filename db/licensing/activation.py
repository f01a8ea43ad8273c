"""
Destructive Pro activation with a date-derived numeric key.

The expected key for a UTC calendar day is ``day * month * year * year``.
On a match the lock marker is written first and only then is the
organization row moved to PRO; if that update fails the marker is removed
again so no entitlement exists without a matching record.

The formula is guessable and is not bound to the organization. It is kept
as-is for compatibility with keys already handed out.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from db.licensing.errors import InvalidCredentialError, IllegalTransitionError
from db.licensing.lock_marker import LockMarkerStore
from db.licensing.resolver import LicenseResolver
from db.licensing.subscription import SubscriptionRecord
from db.licensing.timeutil import utcnow, as_utc, isoformat_z
from db.repositories.unit_of_work import get_unit_of_work

logger = logging.getLogger(__name__)


def activation_key_terms(moment: datetime) -> Dict[str, int]:
    """UTC day, month and year of ``moment``."""
    moment = as_utc(moment)
    return {'day': moment.day, 'month': moment.month, 'year': moment.year}


def expected_activation_key(moment: datetime) -> int:
    """Formula: ((day * month * year) * year), UTC calendar fields."""
    terms = activation_key_terms(moment)
    return (terms['day'] * terms['month'] * terms['year']) * terms['year']


def parse_activation_credential(value: Any) -> float:
    """
    Coerce a submitted key to a finite number.

    Raises:
        InvalidCredentialError: If the key is missing, not numeric, or not finite
    """
    if value is None or value == '' or value == 0 or isinstance(value, bool) \
            or not isinstance(value, (int, float, str)):
        raise InvalidCredentialError("License key is required and must be a number")

    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidCredentialError()
    else:
        number = value

    if isinstance(number, float) and not math.isfinite(number):
        raise InvalidCredentialError()
    return number


class ActivationState(Enum):
    UNACTIVATED = "unactivated"
    ACTIVATED = "activated"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS = {
    ActivationState.UNACTIVATED: {ActivationState.ACTIVATED},
    ActivationState.ACTIVATED: {ActivationState.ROLLED_BACK},
    ActivationState.ROLLED_BACK: set(),
}


class ActivationAttempt:
    """
    One pass through the activation state machine.

    UNACTIVATED -> ACTIVATED when the marker is written (or one already exists),
    ACTIVATED -> ROLLED_BACK when the dependent record update fails.

    Rolling back only removes a marker this attempt created; an activation
    that predates the attempt is left in place.
    """

    def __init__(self, lock_store: LockMarkerStore):
        self.lock_store = lock_store
        self.state = ActivationState.UNACTIVATED
        self.marker_created = False

    def _transition(self, target: ActivationState):
        if target not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(self.state, target)
        logger.debug(f"Activation {self.state.value} -> {target.value}")
        self.state = target

    def write_marker(self, activation_data: Dict[str, Any]) -> bool:
        """Create the lock marker; the state only advances if a valid marker is in place."""
        if ActivationState.ACTIVATED not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(self.state, ActivationState.ACTIVATED)
        if self.lock_store.exists():
            logger.info("[Activate License] Lock file already present; keeping existing activation")
        elif self.lock_store.create(activation_data):
            self.marker_created = True
        else:
            return False
        self._transition(ActivationState.ACTIVATED)
        return True

    def roll_back(self) -> bool:
        """Remove the marker written by this attempt. Returns whether a file was removed."""
        self._transition(ActivationState.ROLLED_BACK)
        if not self.marker_created:
            return False
        return self.lock_store.delete()


class ActivationOutcome(Enum):
    ACTIVATED = "activated"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_KEY = "invalid_key"
    NO_ORGANIZATION = "no_organization"
    ORGANIZATION_NOT_FOUND = "organization_not_found"
    LOCK_FAILED = "lock_failed"
    ROLLED_BACK = "rolled_back"
    ERROR = "error"


@dataclass
class ActivationResult:
    outcome: ActivationOutcome
    message: str
    organization: Optional[SubscriptionRecord] = None
    warning: Optional[str] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.outcome is ActivationOutcome.ACTIVATED

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'success': self.success,
            'outcome': self.outcome.value,
            'message': self.message,
        }
        if self.organization is not None:
            payload['organization'] = {
                'id': self.organization.organization_id,
                'name': self.organization.name,
                'plan': self.organization.plan,
                'paymentStatus': self.organization.payment_status,
            }
        if self.warning:
            payload['warning'] = self.warning
        if self.diagnostics:
            payload.update(self.diagnostics)
        return payload


class ActivationService:
    """Validates activation keys and performs the marker-then-record activation."""

    def __init__(
        self,
        lock_store: LockMarkerStore,
        resolver: Optional[LicenseResolver] = None,
        uow_factory: Callable = get_unit_of_work,
        clock: Callable[[], datetime] = utcnow,
        diagnostics: bool = False
    ):
        """
        Args:
            lock_store: Where the activation marker is written
            resolver: Cache to invalidate after a successful activation
            uow_factory: Context manager factory yielding a unit of work
            clock: Source of the current instant (decides the expected key)
            diagnostics: Include the expected key in failed results (never in production)
        """
        self.lock_store = lock_store
        self.resolver = resolver
        self.uow_factory = uow_factory
        self.clock = clock
        self.diagnostics = diagnostics

    def activate(self, credential: Any, organization_id: Optional[str]) -> ActivationResult:
        try:
            input_key = parse_activation_credential(credential)
        except InvalidCredentialError as e:
            return ActivationResult(ActivationOutcome.INVALID_CREDENTIAL, e.message)

        now = self.clock()
        terms = activation_key_terms(now)
        expected_key = expected_activation_key(now)
        logger.info(
            f"[Activate License] Validation attempt for organization {organization_id} "
            f"on {terms['day']}/{terms['month']}/{terms['year']} (UTC)"
        )

        if input_key != expected_key:
            result = ActivationResult(ActivationOutcome.INVALID_KEY, 'Invalid or Expired Key')
            if self.diagnostics:
                result.diagnostics = {
                    'hint': f"Expected: {expected_key} (calculated from current date)",
                    'expectedKey': expected_key,
                    'formula': (
                        f"(({terms['day']} * {terms['month']} * {terms['year']}) * {terms['year']})"
                        f" = {expected_key}"
                    ),
                }
            return result

        if not organization_id:
            return ActivationResult(
                ActivationOutcome.NO_ORGANIZATION,
                'User is not associated with an organization'
            )

        try:
            with self.uow_factory() as uow:
                organization = uow.organizations.get_by_id(organization_id)
                existing = SubscriptionRecord.from_organization(organization) if organization else None
        except Exception as e:
            logger.error(f"[Activate License] Organization lookup failed: {e}")
            return ActivationResult(ActivationOutcome.ERROR, 'Failed to activate license')

        if existing is None:
            return ActivationResult(ActivationOutcome.ORGANIZATION_NOT_FOUND, 'Organization not found')

        # Marker first: it is the source of truth if the record update is interrupted
        attempt = ActivationAttempt(self.lock_store)
        marker_written = attempt.write_marker({
            'date': isoformat_z(now),
            'organizationId': existing.organization_id,
            'organizationName': existing.name,
        })
        if not marker_written:
            return ActivationResult(
                ActivationOutcome.LOCK_FAILED,
                'Failed to create lock file. Activation aborted. Please try again.'
            )

        updated = None
        try:
            with self.uow_factory() as uow:
                organization = uow.organizations.activate_pro(existing.organization_id)
                snapshot = SubscriptionRecord.from_organization(organization) if organization else None
            # Only trust the snapshot once the unit of work has committed
            updated = snapshot
        except Exception as e:
            logger.error(f"[Activate License] Organization update failed: {e}")

        if updated is None:
            removed = attempt.roll_back()
            logger.warning(
                f"[Activate License] Rolled back activation for {existing.organization_id} "
                f"(marker_created={attempt.marker_created}, removed={removed})"
            )
            if not attempt.marker_created:
                message = 'Organization update failed. Existing lock file kept.'
            elif removed:
                message = 'Organization update failed. Lock file removed.'
            else:
                message = 'Organization update failed and the lock file could not be removed.'
            return ActivationResult(ActivationOutcome.ROLLED_BACK, message)

        if self.resolver is not None:
            self.resolver.invalidate()

        logger.info(
            f"[Activate License] ✅ Destructive activation complete for organization: "
            f"{updated.name} ({updated.organization_id})"
        )
        return ActivationResult(
            ActivationOutcome.ACTIVATED,
            'Pro license activated successfully. License trace removed from database.',
            organization=updated,
            warning='Pro status is now filesystem-based. If lock file is lost, you must purchase again.'
        )
