"""CreditLedger model for company credit accounting."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


ENTRY_ADMIN_GRANT = "admin_grant"
ENTRY_ADMIN_DEDUCTION = "admin_deduction"
ENTRY_ADMIN_RESET = "admin_reset"
ENTRY_UNLOCK_RESET = "unlock_reset"
ENTRY_PROFILE_UNLOCK = "profile_unlock"

ADMIN_ENTRY_TYPES = frozenset(
    {ENTRY_ADMIN_GRANT, ENTRY_ADMIN_DEDUCTION, ENTRY_ADMIN_RESET, ENTRY_UNLOCK_RESET}
)
ENTRY_TYPES = ADMIN_ENTRY_TYPES | {ENTRY_PROFILE_UNLOCK}

SYSTEM_ACTOR_ID = "system"


class CreditLedgerEntry(Base):
    """Immutable credit ledger entry."""

    __tablename__ = "credit_ledger"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (UniqueConstraint("company_id", "sequence", name="uq_credit_ledger_company_sequence"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    entry_type = Column(String, nullable=False, index=True)
    delta = Column(Integer, nullable=False)
    resulting_balance = Column(Integer, nullable=False)
    reason = Column(String, nullable=True)
    admin_note = Column(Text, nullable=True)
    actor_id = Column(String, nullable=False)
    related_profile_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
