"""Repository for organization plan and subscription state."""

from typing import Optional, List, Union
from datetime import datetime
from uuid import UUID
from sqlalchemy.orm import Session

from db.models.models import Organization
from db.repositories.base_repository import BaseRepository


def coerce_uuid(value: Union[str, UUID, None]) -> Optional[UUID]:
    """Parse an organization id, returning None for anything malformed."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError):
        return None


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for organization rows and their plan fields."""

    def __init__(self, session: Session):
        super().__init__(session, Organization)

    def get_by_id(self, entity_id) -> Optional[Organization]:
        """Get an organization by ID (accepts UUIDs or their string form)."""
        org_id = coerce_uuid(entity_id)
        if org_id is None:
            return None
        return super().get_by_id(org_id)

    def activate_pro(self, organization_id) -> Optional[Organization]:
        """
        Move an organization to the PRO plan and strip the payment trace.

        Returns:
            The updated organization, or None if it does not exist
        """
        return self.update(
            coerce_uuid(organization_id),
            plan='PRO',
            payment_status='VERIFIED',
            subscription_expiry=None,
            payment_reference=None,
            payment_screenshot=None
        )

    def approve_upgrade(self, organization_id, expiry: datetime) -> Optional[Organization]:
        """Approve a paid upgrade with a dated subscription."""
        return self.update(
            coerce_uuid(organization_id),
            plan='PRO',
            payment_status='VERIFIED',
            subscription_expiry=expiry
        )

    def apply_license_to_all(self, expiry: Optional[datetime], payment_reference: str) -> List[Organization]:
        """Upgrade every organization to PRO from an installed license file."""
        organizations = self.get_all()
        for organization in organizations:
            organization.plan = 'PRO'
            organization.payment_status = 'VERIFIED'
            organization.subscription_expiry = expiry
            organization.payment_reference = payment_reference
        self.session.flush()
        return organizations
