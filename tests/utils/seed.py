"""
Test Data Seeding Utilities

Factory functions for organizations, license.json documents and a
controllable clock.
"""
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from db.licensing.license_token import encode_license_key
from db.repositories.unit_of_work import get_unit_of_work

TEST_SECRET = "test-license-secret"

# 2024-03-15 -> 15 * 3 * 2024 * 2024 = 184345920
FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)
FIXED_NOW_KEY = 184345920


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def seed_organization(
    name: str = "Acme",
    plan: str = "BASIC",
    subscription_expiry: Optional[datetime] = None,
    payment_reference: Optional[str] = None,
    payment_status: str = "VERIFIED",
    payment_screenshot: Optional[str] = None
) -> str:
    """Create an organization and return its id as a string."""
    with get_unit_of_work() as uow:
        organization = uow.organizations.create(
            name=name,
            plan=plan,
            subscription_expiry=subscription_expiry,
            payment_reference=payment_reference,
            payment_status=payment_status,
            payment_screenshot=payment_screenshot
        )
        return str(organization.id)


def signed_key(payload: Dict[str, Any], secret: str = TEST_SECRET) -> str:
    return encode_license_key(payload, secret)


def write_license(path: Path, **document) -> Path:
    """Write a license.json document, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")
    return path
