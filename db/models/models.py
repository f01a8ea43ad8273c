"""
SQLAlchemy models for the organization / plan schema.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, Boolean, CheckConstraint, Index, Uuid
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class Organization(Base):
    __tablename__ = 'organizations'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    domain = Column(String, nullable=True)
    description = Column(Text, nullable=True, default='')
    status = Column(String, nullable=False, default='active')
    allow_self_registration = Column(Boolean, nullable=False, default=False)
    default_role = Column(String, nullable=False, default='user')

    # Freemium plan management
    plan = Column(String, nullable=False, default='BASIC')
    subscription_expiry = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String, nullable=True)
    payment_status = Column(String, nullable=False, default='VERIFIED')  # Basic plan is verified by default
    payment_screenshot = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("plan IN ('BASIC', 'PRO')", name='organizations_plan_check'),
        CheckConstraint("status IN ('active', 'inactive')", name='organizations_status_check'),
        CheckConstraint(
            "payment_status IN ('PENDING', 'VERIFIED', 'FAILED')",
            name='organizations_payment_status_check'
        ),
    )

    def __repr__(self):
        return f"<Organization(id='{self.id}', name='{self.name}', plan='{self.plan}')>"


Index('idx_organizations_plan', Organization.plan)
