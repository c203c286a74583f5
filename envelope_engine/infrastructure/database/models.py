"""SQLAlchemy ORM models for budget entities"""

import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class IncomeSourceRecord(Base):
    """Recurring income, amount per pay event"""

    __tablename__ = "income_source"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    frequency = Column(Text, nullable=False)
    next_pay_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    allocations = relationship("IncomeAllocationRecord", back_populates="income_source", cascade="all, delete-orphan")


class EnvelopeRecord(Base):
    """Budget envelope with target, cadence and due date"""

    __tablename__ = "envelope"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    target_amount_cents = Column(BigInteger, nullable=False)
    frequency = Column(Text, nullable=False)
    subtype = Column(Text, nullable=False, default="bill")
    priority = Column(Text, nullable=False, default="important")
    current_balance_cents = Column(BigInteger, nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    due_day = Column(Integer, nullable=True)
    funding_started_on = Column(Date, nullable=True)  # first pay the envelope was funded from; gap analysis baseline
    allocation_locked = Column(Boolean, nullable=False, default=False)  # holds a lock before any allocation exists
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    allocations = relationship("IncomeAllocationRecord", back_populates="envelope", cascade="all, delete-orphan")


class IncomeAllocationRecord(Base):
    """Per-pay amount sent from one income source to one envelope"""

    __tablename__ = "income_allocation"
    __table_args__ = (UniqueConstraint("envelope_id", "income_source_id", name="uq_allocation_envelope_source"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    envelope_id = Column(String(36), ForeignKey("envelope.id", ondelete="CASCADE"), nullable=False)
    income_source_id = Column(String(36), ForeignKey("income_source.id", ondelete="CASCADE"), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    is_locked = Column(Boolean, nullable=False, default=False)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    is_surplus = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    envelope = relationship("EnvelopeRecord", back_populates="allocations")
    income_source = relationship("IncomeSourceRecord", back_populates="allocations")


class DebtAccountRecord(Base):
    """Revolving debt account (credit card)"""

    __tablename__ = "debt_account"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    balance_cents = Column(BigInteger, nullable=False)
    apr = Column(Float, nullable=False)
    minimum_payment_cents = Column(BigInteger, nullable=False, default=0)
    monthly_payment_cents = Column(BigInteger, nullable=False, default=0)
    extra_principal_cents = Column(BigInteger, nullable=False, default=0)
    payoff_priority = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
