"""ProfileUnlock model: the set of candidate profiles a company has unlocked."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class ProfileUnlock(Base):
    """One (company, profile) pair in the unlocked set."""

    __tablename__ = "profile_unlocks"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (UniqueConstraint("company_id", "profile_id", name="uq_profile_unlocks_company_profile"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)
    profile_id = Column(String, ForeignKey("candidate_profiles.id"), nullable=False, index=True)
    ledger_entry_id = Column(String, ForeignKey("credit_ledger.id"), nullable=False)
    unlocked_at = Column(DateTime(timezone=True), server_default=func.now())
