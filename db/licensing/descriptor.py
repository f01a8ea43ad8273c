"""
License descriptor (license.json) loading and validation.

The descriptor is placed on disk by the operator, either baked into the
container image or dropped into the project's License/ folder:

    {
        "product": "OpenDesk",
        "tier": "PRO_LIFETIME",
        "id": "LIC-0001",
        "validity": "Perpetual",
        "licenseKey": "<base64url header>.<base64url payload>.<hex signature>"
    }

Validation is permissive. A descriptor without a licenseKey is
accepted for backward compatibility, and a Pro-tier descriptor whose key
fails the signature check is still accepted. Those paths are reported as
``UNVERIFIED_ACCEPTED`` (logged and counted) rather than ``VERIFIED``.
"""

import hmac
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from db.licensing.license_token import decode_license_payload, sign
from db.licensing.lock_marker import CONTAINER_LICENSE_DIR
from db.licensing.timeutil import utcnow, parse_timestamp

logger = logging.getLogger(__name__)

PRO_TIERS = frozenset({'PRO', 'PRO_LIFETIME'})
LICENSE_FILE_NAME = 'license.json'
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def is_pro_tier(tier: Any) -> bool:
    return isinstance(tier, str) and tier in PRO_TIERS


@dataclass
class LicenseDescriptor:
    """A parsed license.json document."""
    product: str
    tier: str
    id: Optional[str] = None
    validity: Optional[str] = None
    license_key: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_pro_tier(self) -> bool:
        return is_pro_tier(self.tier)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> Optional['LicenseDescriptor']:
        """Build a descriptor, or None when ``product``/``tier`` are missing or empty."""
        product = document.get('product')
        tier = document.get('tier')
        if not product or not tier:
            return None
        return cls(
            product=product,
            tier=tier,
            id=document.get('id'),
            validity=document.get('validity'),
            license_key=document.get('licenseKey'),
            raw=dict(document)
        )

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw)


class ValidationStatus(Enum):
    VERIFIED = "verified"
    UNVERIFIED_ACCEPTED = "unverified_accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating a descriptor's license key."""
    status: ValidationStatus
    reason: Optional[str] = None

    @classmethod
    def verified(cls) -> 'ValidationOutcome':
        return cls(ValidationStatus.VERIFIED)

    @classmethod
    def unverified_accepted(cls, reason: str) -> 'ValidationOutcome':
        return cls(ValidationStatus.UNVERIFIED_ACCEPTED, reason)

    @classmethod
    def rejected(cls, reason: str) -> 'ValidationOutcome':
        return cls(ValidationStatus.REJECTED, reason)

    @property
    def accepted(self) -> bool:
        return self.status is not ValidationStatus.REJECTED


class LicenseDescriptorReader:
    """Finds, parses and validates license.json."""

    def __init__(
        self,
        secret: str,
        candidate_paths: Optional[Sequence[Path]] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Args:
            secret: HMAC secret shared with whoever mints license keys
            candidate_paths: Probe order; defaults to the container path then the project path
            clock: Source of the current instant for expiry checks
        """
        self.secret = secret
        self._candidate_paths = [Path(p) for p in candidate_paths] if candidate_paths is not None else None
        self.clock = clock
        self.read_count = 0
        self.unverified_acceptances: Counter = Counter()

    def candidate_paths(self) -> List[Path]:
        if self._candidate_paths is not None:
            return list(self._candidate_paths)
        return [
            CONTAINER_LICENSE_DIR / LICENSE_FILE_NAME,
            PROJECT_ROOT / 'License' / LICENSE_FILE_NAME,
        ]

    def find(self) -> Optional[Path]:
        """First candidate path that exists, if any."""
        for path in self.candidate_paths():
            if path.is_file():
                return path
        return None

    def load(self) -> Optional[LicenseDescriptor]:
        """
        Load the first license.json found.

        Returns:
            The descriptor, or None if no file exists or it is malformed
        """
        path = self.find()
        if path is None:
            logger.info(
                "[License] No license.json found. Checked paths: "
                + ", ".join(str(p) for p in self.candidate_paths())
            )
            return None

        logger.debug(f"[License] Found license at: {path}")
        self.read_count += 1
        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"[License] Could not read {path}: {e}")
            return None

        if not isinstance(document, dict):
            logger.warning(f"[License] Invalid license.json format in {path}")
            return None

        descriptor = LicenseDescriptor.from_document(document)
        if descriptor is None:
            logger.warning(f"[License] Invalid license.json format in {path}: product and tier are required")
        return descriptor

    def validate(self, descriptor: LicenseDescriptor) -> ValidationOutcome:
        """Check the descriptor's license key, if it carries one."""
        try:
            outcome = self._validate_key(descriptor)
        except Exception as e:
            logger.error(f"[License] Token validation error: {e}")
            outcome = self._tier_fallback(descriptor, 'validation-error')

        if outcome.status is ValidationStatus.UNVERIFIED_ACCEPTED:
            self.unverified_acceptances[outcome.reason] += 1
            logger.warning(
                f"[License] Accepting license {descriptor.id or 'N/A'} without signature "
                f"verification ({outcome.reason})"
            )
        return outcome

    def _validate_key(self, descriptor: LicenseDescriptor) -> ValidationOutcome:
        if not descriptor.license_key:
            return ValidationOutcome.unverified_accepted('no-license-key')

        if not descriptor.id:
            return ValidationOutcome.rejected('missing-id')

        parts = str(descriptor.license_key).split('.')
        if len(parts) != 3:
            if isinstance(descriptor.id, str) and descriptor.id:
                return ValidationOutcome.unverified_accepted('not-a-token')
            return ValidationOutcome.rejected('not-a-token')

        header, payload, signature = parts
        expected = sign(f"{header}.{payload}", self.secret)
        if not hmac.compare_digest(signature, expected):
            return self._tier_fallback(descriptor, 'signature-mismatch')

        try:
            claims = decode_license_payload(payload)
        except ValueError:
            return self._tier_fallback(descriptor, 'undecodable-payload')

        if claims.get('expiresAt'):
            expires_at = parse_timestamp(claims['expiresAt'])
            if expires_at is not None and self.clock() > expires_at:
                return ValidationOutcome.rejected('expired')

        tier = descriptor.tier or claims.get('tier') or claims.get('plan')
        if not is_pro_tier(tier):
            return ValidationOutcome.rejected('tier-not-pro')

        return ValidationOutcome.verified()

    @staticmethod
    def _tier_fallback(descriptor: LicenseDescriptor, reason: str) -> ValidationOutcome:
        if descriptor.is_pro_tier:
            return ValidationOutcome.unverified_accepted(reason)
        return ValidationOutcome.rejected(reason)
