"""Company model for hiring organizations."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Company(Base):
    """Hiring organization that spends credits to unlock candidate profiles."""

    __tablename__ = "companies"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    industry = Column(String, nullable=True, index=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    credit_account = relationship(
        "CreditAccount",
        back_populates="company",
        uselist=False,
        cascade="all, delete-orphan",
    )
