"""CreditAccount model: materialized credit balance per company."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class CreditAccount(Base):
    """Projected balance for one company.

    ``balance`` only changes together with a ledger append. ``version`` is bumped
    by every mutating transaction and doubles as the company's ledger sequence.
    """

    __tablename__ = "credit_accounts"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_credit_accounts_balance_non_negative"),)

    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True)
    balance = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    company = relationship("Company", back_populates="credit_account")
