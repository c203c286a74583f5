"""Data access layer for budget entities"""

from datetime import date, datetime, timezone
from typing import List, Optional, Set, Tuple
from sqlalchemy.orm import Session

from envelope_engine.domain.calendar import parse_frequency
from envelope_engine.domain.models import (
    DebtAccount,
    Envelope,
    EnvelopeSubtype,
    IncomeAllocation,
    IncomeSource,
    Priority,
)
from envelope_engine.infrastructure.database.models import (
    DebtAccountRecord,
    EnvelopeRecord,
    IncomeAllocationRecord,
    IncomeSourceRecord,
)


class IncomeSourceRepository:
    """Repository for income sources"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, source: IncomeSource) -> IncomeSourceRecord:
        """Persist an income source, keeping the caller's id when one is given"""
        record = IncomeSourceRecord(
            user_id=user_id,
            name=source.name,
            amount_cents=source.amount_cents,
            frequency=parse_frequency(source.frequency).value,
            next_pay_date=source.next_pay_date,
            is_active=source.is_active,
        )
        if source.id:
            record.id = source.id
        self.db.add(record)
        self.db.flush()
        return record

    def list_by_user(self, user_id: str) -> List[IncomeSourceRecord]:
        return (
            self.db.query(IncomeSourceRecord)
            .filter(IncomeSourceRecord.user_id == user_id)
            .order_by(IncomeSourceRecord.created_at, IncomeSourceRecord.id)
            .all()
        )

    @staticmethod
    def to_domain(record: IncomeSourceRecord) -> IncomeSource:
        return IncomeSource(
            id=record.id,
            name=record.name,
            amount_cents=record.amount_cents,
            frequency=parse_frequency(record.frequency),
            next_pay_date=record.next_pay_date,
            is_active=record.is_active,
        )


class EnvelopeRepository:
    """Repository for envelopes"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, envelope: Envelope, funding_started_on: Optional[date] = None) -> EnvelopeRecord:
        record = EnvelopeRecord(
            user_id=user_id,
            name=envelope.name,
            target_amount_cents=envelope.target_amount_cents,
            frequency=parse_frequency(envelope.frequency).value,
            subtype=EnvelopeSubtype(envelope.subtype).value,
            priority=Priority(envelope.priority).value,
            current_balance_cents=envelope.current_balance_cents,
            due_date=envelope.due_date,
            due_day=envelope.due_day,
            funding_started_on=funding_started_on,
        )
        if envelope.id:
            record.id = envelope.id
        self.db.add(record)
        self.db.flush()
        return record

    def get(self, user_id: str, envelope_id: str) -> Optional[EnvelopeRecord]:
        return (
            self.db.query(EnvelopeRecord)
            .filter(EnvelopeRecord.user_id == user_id, EnvelopeRecord.id == envelope_id)
            .first()
        )

    def list_by_user(self, user_id: str) -> List[EnvelopeRecord]:
        return (
            self.db.query(EnvelopeRecord)
            .filter(EnvelopeRecord.user_id == user_id)
            .order_by(EnvelopeRecord.created_at, EnvelopeRecord.id)
            .all()
        )

    def set_allocation_locked(self, record: EnvelopeRecord, locked: bool) -> EnvelopeRecord:
        record.allocation_locked = locked
        self.db.flush()
        return record

    def locked_ids(self, user_id: str) -> Set[str]:
        """Envelopes locked at envelope level, whether or not they have allocations yet"""
        records = (
            self.db.query(EnvelopeRecord.id)
            .filter(EnvelopeRecord.user_id == user_id, EnvelopeRecord.allocation_locked.is_(True))
            .all()
        )
        return {record.id for record in records}

    @staticmethod
    def to_domain(record: EnvelopeRecord) -> Envelope:
        """Convert a row; an unknown stored frequency surfaces as InvalidFrequency"""
        return Envelope(
            id=record.id,
            name=record.name,
            target_amount_cents=record.target_amount_cents,
            frequency=parse_frequency(record.frequency),
            subtype=EnvelopeSubtype(record.subtype),
            priority=Priority(record.priority),
            current_balance_cents=record.current_balance_cents,
            due_date=record.due_date,
            due_day=record.due_day,
        )


class AllocationRepository:
    """Repository for income allocations"""

    def __init__(self, db: Session):
        self.db = db

    def list_by_user(self, user_id: str) -> List[IncomeAllocationRecord]:
        return (
            self.db.query(IncomeAllocationRecord)
            .filter(IncomeAllocationRecord.user_id == user_id)
            .order_by(IncomeAllocationRecord.created_at, IncomeAllocationRecord.id)
            .all()
        )

    def upsert(self, user_id: str, allocation: IncomeAllocation) -> IncomeAllocationRecord:
        """Insert or replace the allocation for an envelope x income source pair"""
        record = (
            self.db.query(IncomeAllocationRecord)
            .filter(
                IncomeAllocationRecord.user_id == user_id,
                IncomeAllocationRecord.envelope_id == allocation.envelope_id,
                IncomeAllocationRecord.income_source_id == allocation.income_source_id,
            )
            .first()
        )
        if record is None:
            record = IncomeAllocationRecord(
                user_id=user_id,
                envelope_id=allocation.envelope_id,
                income_source_id=allocation.income_source_id,
            )
            self.db.add(record)

        record.amount_cents = allocation.amount_cents
        record.is_surplus = allocation.is_surplus
        record.is_locked = allocation.is_locked
        self.db.flush()
        return record

    def set_locked(self, user_id: str, envelope_id: str, locked: bool) -> int:
        """Lock or unlock every allocation of an envelope; returns rows changed"""
        records = (
            self.db.query(IncomeAllocationRecord)
            .filter(
                IncomeAllocationRecord.user_id == user_id,
                IncomeAllocationRecord.envelope_id == envelope_id,
            )
            .all()
        )
        for record in records:
            record.is_locked = locked
            record.locked_at = datetime.now(timezone.utc) if locked else None
        self.db.flush()
        return len(records)

    @staticmethod
    def to_domain(record: IncomeAllocationRecord) -> IncomeAllocation:
        return IncomeAllocation(
            envelope_id=record.envelope_id,
            income_source_id=record.income_source_id,
            amount_cents=record.amount_cents,
            is_locked=record.is_locked,
            is_surplus=record.is_surplus,
        )


class DebtAccountRepository:
    """Repository for debt accounts"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, account: DebtAccount) -> DebtAccountRecord:
        record = DebtAccountRecord(
            user_id=user_id,
            name=account.name,
            balance_cents=account.balance_cents,
            apr=account.apr,
            minimum_payment_cents=account.minimum_payment_cents,
            monthly_payment_cents=account.monthly_payment_cents,
            extra_principal_cents=account.extra_principal_cents,
            payoff_priority=account.payoff_priority,
        )
        if account.id:
            record.id = account.id
        self.db.add(record)
        self.db.flush()
        return record

    def get(self, user_id: str, account_id: str) -> Optional[DebtAccountRecord]:
        return (
            self.db.query(DebtAccountRecord)
            .filter(DebtAccountRecord.user_id == user_id, DebtAccountRecord.id == account_id)
            .first()
        )

    def list_by_user(self, user_id: str) -> List[DebtAccountRecord]:
        return (
            self.db.query(DebtAccountRecord)
            .filter(DebtAccountRecord.user_id == user_id)
            .order_by(DebtAccountRecord.created_at, DebtAccountRecord.id)
            .all()
        )

    @staticmethod
    def to_domain(record: DebtAccountRecord) -> DebtAccount:
        return DebtAccount(
            id=record.id,
            name=record.name,
            balance_cents=record.balance_cents,
            apr=record.apr,
            minimum_payment_cents=record.minimum_payment_cents,
            monthly_payment_cents=record.monthly_payment_cents,
            extra_principal_cents=record.extra_principal_cents,
            payoff_priority=record.payoff_priority,
        )


def load_budget(db: Session, user_id: str) -> Tuple[List[IncomeSource], List[Envelope], List[IncomeAllocation]]:
    """Income sources, envelopes and allocations of a user as domain objects"""
    sources = [IncomeSourceRepository.to_domain(r) for r in IncomeSourceRepository(db).list_by_user(user_id)]
    envelopes = [EnvelopeRepository.to_domain(r) for r in EnvelopeRepository(db).list_by_user(user_id)]
    allocations = [AllocationRepository.to_domain(r) for r in AllocationRepository(db).list_by_user(user_id)]
    return sources, envelopes, allocations
