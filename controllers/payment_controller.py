"""
Payment Controller

Subscription status for the caller's organization and admin approval of
paid upgrades. Payment collection itself happens outside this service.
"""

import calendar
import logging
from datetime import datetime
from typing import Any, Dict, Tuple

from flask import g, request

from db.licensing.subscription import SubscriptionRecord
from db.licensing.timeutil import utcnow, isoformat_z
from db.repositories.unit_of_work import get_unit_of_work

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIPTION_MONTHS = 12


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class PaymentController:
    """Handlers for /api/payment endpoints."""

    def payment_status(self) -> Tuple[Dict[str, Any], int]:
        """
        GET /api/payment/status
        """
        record = g.get('organization')
        if record is None:
            return {"message": "Organization not found"}, 404

        return {
            "plan": record.plan,
            "paymentStatus": record.payment_status,
            "subscriptionExpiry": isoformat_z(record.subscription_expiry) if record.subscription_expiry else None,
            "paymentReference": record.payment_reference,
        }, 200

    def approve_upgrade(self) -> Tuple[Dict[str, Any], int]:
        """
        POST /api/payment/admin/approve-upgrade

        Body: {"organizationId": "...", "subscriptionMonths": 12}
        """
        data = request.get_json(silent=True) or {}
        organization_id = data.get('organizationId')
        if not organization_id:
            return {"message": "Organization ID is required"}, 400

        try:
            months = int(data.get('subscriptionMonths', DEFAULT_SUBSCRIPTION_MONTHS))
        except (TypeError, ValueError):
            return {"message": "subscriptionMonths must be a whole number"}, 400
        if months <= 0:
            return {"message": "subscriptionMonths must be positive"}, 400

        expiry = add_months(utcnow(), months)
        try:
            with get_unit_of_work() as uow:
                organization = uow.organizations.approve_upgrade(organization_id, expiry)
                record = SubscriptionRecord.from_organization(organization) if organization else None
        except Exception as e:
            logger.error(f"Upgrade approval error: {e}")
            return {"message": str(e) or "Error approving upgrade"}, 500

        if record is None:
            return {"message": "Organization not found"}, 404

        logger.info(f"Upgrade approved for {record.name} ({record.organization_id}) until {expiry.date()}")
        return {
            "message": "Upgrade approved successfully",
            "organization": record.to_dict(),
        }, 200
