"""
Shaho Sync - Payroll & Bonus Aggregator

Maintains the monthly payroll aggregate (PayrollMonth) and its bonus
payments (BonusPayment) from payroll entries sent by the payroll system.

Each payroll entry splits into at most two independent facts:

- a salary fact (amount / worked days) for the entry's yearMonth, written
  with overwrite semantics;
- a bonus fact for the month of bonusPaidOn, written as one BonusPayment
  row identified by a deterministic payment id.

Every fact is applied in its own transaction that first locks the target
month row, so concurrent syncs touching the same employee and month are
serialised. Bonus totals are maintained by delta: the previous contribution
of the payment being written is subtracted before the new one is added,
which keeps every month total equal to the sum over its payments when a
payment is resent or edited.
"""

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shaho_sync.config import settings
from shaho_sync.models.payroll import BonusPayment, PayrollMonth, ZERO
from shaho_sync.schemas.employee_sync import ExternalPayrollRecord
from shaho_sync.services.record_validator import ValidationIssue
from shaho_sync.services.sync_context import SyncContext
from shaho_sync.utils.concurrency import retry_transaction
from shaho_sync.utils.error_handling import ErrorCode
from shaho_sync.utils.normalization import (
    canonical_year_month,
    display_year_month,
    is_blank,
    normalize_string,
    parse_date,
    to_decimal,
    to_worked_days,
    year_month_of,
)

logger = logging.getLogger(__name__)

BONUS_ID_SEQUENCE = "sequence"
BONUS_ID_CONTENT_HASH = "content_hash"

# Upstream ids become payment ids, so both columns bound them
SOURCE_PAYMENT_ID_MAX_LENGTH = BonusPayment.__table__.c.source_payment_id.type.length


# ===========================================
# FACTS
# ===========================================

@dataclass(frozen=True)
class SalaryFact:
    year_month_key: str
    amount: Optional[Decimal] = None
    worked_days: Optional[int] = None


@dataclass(frozen=True)
class BonusFact:
    year_month_key: str
    paid_on: date
    bonus_total: Decimal
    standard_health_bonus: Optional[Decimal] = None
    standard_welfare_bonus: Optional[Decimal] = None
    source_payment_id: Optional[str] = None


@dataclass
class EntryFacts:
    salary: Optional[SalaryFact] = None
    bonus: Optional[BonusFact] = None
    issues: List[ValidationIssue] = field(default_factory=list)


def extract_facts(entry: ExternalPayrollRecord) -> EntryFacts:
    """
    Split one payroll entry into its salary and bonus facts.

    Problems are returned as issues; they reject the fact, not the record.
    """
    facts = EntryFacts()

    has_salary = not is_blank(entry.amount) or not is_blank(entry.worked_days)
    if has_salary:
        key = canonical_year_month(entry.year_month)
        amount = to_decimal(entry.amount)
        worked_days = to_worked_days(entry.worked_days)
        if key is None:
            facts.issues.append(ValidationIssue(
                ErrorCode.INVALID_YEAR_MONTH,
                "payroll entry has salary data but yearMonth is missing or invalid",
            ))
        elif not is_blank(entry.amount) and amount is None:
            facts.issues.append(ValidationIssue(
                ErrorCode.INVALID_AMOUNT, f"payroll amount for {key} must be numeric",
            ))
        elif not is_blank(entry.worked_days) and worked_days is None:
            facts.issues.append(ValidationIssue(
                ErrorCode.INVALID_AMOUNT, f"workedDays for {key} must be a whole number",
            ))
        else:
            facts.salary = SalaryFact(year_month_key=key, amount=amount, worked_days=worked_days)

    has_bonus = not is_blank(entry.bonus_paid_on) or not is_blank(entry.bonus_total)
    if has_bonus:
        paid_on = parse_date(entry.bonus_paid_on)
        bonus_total = to_decimal(entry.bonus_total)
        source_payment_id = normalize_string(entry.source_payment_id)
        if paid_on is None:
            facts.issues.append(ValidationIssue(
                ErrorCode.INVALID_BONUS,
                "payroll entry has bonus data but bonusPaidOn is missing or not a valid date",
            ))
        elif bonus_total is None:
            facts.issues.append(ValidationIssue(
                ErrorCode.INVALID_BONUS,
                f"bonus paid on {paid_on.isoformat()} has no numeric bonusTotal",
            ))
        elif source_payment_id and len(source_payment_id) > SOURCE_PAYMENT_ID_MAX_LENGTH:
            facts.issues.append(ValidationIssue(
                ErrorCode.INVALID_BONUS,
                f"sourcePaymentId must be at most {SOURCE_PAYMENT_ID_MAX_LENGTH} characters",
            ))
        else:
            facts.bonus = BonusFact(
                year_month_key=year_month_of(paid_on),
                paid_on=paid_on,
                bonus_total=bonus_total,
                standard_health_bonus=to_decimal(entry.standard_health_bonus),
                standard_welfare_bonus=to_decimal(entry.standard_welfare_bonus),
                source_payment_id=source_payment_id,
            )

    return facts


# ===========================================
# BONUS PAYMENT IDS
# ===========================================

def format_amount(amount: Decimal) -> str:
    """Plain decimal text without exponent or trailing zeros: 100000, 1234.5"""
    return format(amount.normalize(), "f")


def sequence_payment_id(
    fact: BonusFact,
    existing_ids: Sequence[str],
    claimed_ids: Set[str],
) -> str:
    """
    YYYYMMDD-{amount}-{seq} id for a bonus without an upstream id.

    A stored id for the same date and amount that this call has not already
    written is reused, so resending an unchanged payment lands on its own
    row. Otherwise seq is one more than the number of stored ids for that
    date.

    Reuse cannot tell a resend from a new payment: a second payment with
    the same date and amount sent alone in a later call merges into the
    first one's row. Upstream systems that pay identical bonuses on one
    day must send sourcePaymentId.
    """
    day = fact.paid_on.strftime("%Y%m%d")
    prefix = f"{day}-{format_amount(fact.bonus_total)}-"

    reusable = sorted(
        (pid for pid in existing_ids if pid.startswith(prefix) and pid not in claimed_ids),
        key=_sequence_number,
    )
    if reusable:
        return reusable[0]

    same_day = sum(1 for pid in existing_ids if pid.startswith(day))
    return f"{prefix}{same_day + 1}"


def _sequence_number(payment_id: str) -> Tuple[int, str]:
    tail = payment_id.rsplit("-", 1)[-1]
    return (int(tail), payment_id) if tail.isdigit() else (0, payment_id)


def content_hash_payment_id(
    employee_no: str,
    fact: BonusFact,
    claimed_ids: Set[str],
) -> str:
    """
    Stable digest of (employee, date, amount, occurrence).

    The occurrence counter separates identical payments made on the same
    day within one call.
    """
    day = fact.paid_on.strftime("%Y%m%d")
    amount = format_amount(fact.bonus_total)
    occurrence = 1
    while True:
        digest = hashlib.sha256(
            f"{employee_no}|{day}|{amount}|{occurrence}".encode("utf-8")
        ).hexdigest()[:16]
        payment_id = f"{day}-{digest}"
        if payment_id not in claimed_ids:
            return payment_id
        occurrence += 1


# ===========================================
# AGGREGATOR
# ===========================================

class PayrollAggregator:
    """
    Applies salary and bonus facts for one ingestion call.

    Sessions come from session_factory, one per fact transaction.
    claimed_ids tracks, per (employee, month), the payment ids written by
    this call so that two payments in the same batch never share an id.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        context: SyncContext,
        bonus_id_strategy: Optional[str] = None,
        retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.context = context
        self.bonus_id_strategy = bonus_id_strategy or settings.bonus_id_strategy
        self.retries = settings.sync_transaction_retries if retries is None else retries
        self.retry_base_delay = (
            settings.sync_retry_base_delay_seconds if retry_base_delay is None else retry_base_delay
        )
        self.claimed_ids: Dict[Tuple[uuid.UUID, str], Set[str]] = {}

    async def apply_salary(self, employee_id: uuid.UUID, fact: SalaryFact) -> None:
        async def operation() -> None:
            async with self.session_factory() as db:
                async with db.begin():
                    month = await self._lock_month(db, employee_id, fact.year_month_key)
                    if fact.amount is not None:
                        month.amount = fact.amount
                    if fact.worked_days is not None:
                        month.worked_days = fact.worked_days
                    self.context.stamp_updated(month)

        await retry_transaction(
            operation,
            retries=self.retries,
            base_delay=self.retry_base_delay,
            description=f"salary {fact.year_month_key} for employee {employee_id}",
        )

    async def apply_bonus(self, employee_id: uuid.UUID, employee_no: str, fact: BonusFact) -> str:
        """Write one bonus payment and fold it into its month. Returns the payment id."""
        claimed = self.claimed_ids.setdefault((employee_id, fact.year_month_key), set())

        async def operation() -> str:
            async with self.session_factory() as db:
                async with db.begin():
                    return await self._write_bonus(db, employee_id, employee_no, fact, claimed)

        payment_id = await retry_transaction(
            operation,
            retries=self.retries,
            base_delay=self.retry_base_delay,
            description=f"bonus {fact.paid_on.isoformat()} for employee {employee_no}",
        )
        claimed.add(payment_id)
        return payment_id

    async def _lock_month(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year_month_key: str,
    ) -> PayrollMonth:
        """
        Lock the month row, creating it when absent.

        Two transactions creating the same month concurrently collide on the
        (employee_id, year_month_key) unique constraint; the loser is retried
        and then finds the row.
        """
        result = await db.execute(
            select(PayrollMonth)
            .where(
                PayrollMonth.employee_id == employee_id,
                PayrollMonth.year_month_key == year_month_key,
            )
            .with_for_update()
        )
        month = result.scalar_one_or_none()
        if month is not None:
            return month

        month = PayrollMonth(
            employee_id=employee_id,
            year_month_key=year_month_key,
            year_month=display_year_month(year_month_key),
            bonus_total=ZERO,
            standard_health_bonus_total=ZERO,
            standard_welfare_bonus_total=ZERO,
            standard_bonus_total=ZERO,
        )
        self.context.stamp_created(month)
        db.add(month)
        await db.flush()
        return month

    def _payment_id(
        self,
        employee_no: str,
        fact: BonusFact,
        existing_ids: Sequence[str],
        claimed: Set[str],
    ) -> str:
        if fact.source_payment_id:
            return fact.source_payment_id
        if self.bonus_id_strategy == BONUS_ID_CONTENT_HASH:
            return content_hash_payment_id(employee_no, fact, claimed)
        return sequence_payment_id(fact, existing_ids, claimed)

    async def _write_bonus(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        employee_no: str,
        fact: BonusFact,
        claimed: Set[str],
    ) -> str:
        month = await self._lock_month(db, employee_id, fact.year_month_key)

        existing_ids = (
            await db.execute(
                select(BonusPayment.payment_id).where(BonusPayment.payroll_month_id == month.id)
            )
        ).scalars().all()
        payment_id = self._payment_id(employee_no, fact, existing_ids, claimed)

        payment = (
            await db.execute(
                select(BonusPayment).where(
                    BonusPayment.payroll_month_id == month.id,
                    BonusPayment.payment_id == payment_id,
                )
            )
        ).scalar_one_or_none()

        if payment is None:
            previous = (ZERO, ZERO, ZERO)
            payment = BonusPayment(payroll_month_id=month.id, payment_id=payment_id)
            self.context.stamp_created(payment)
            db.add(payment)
        else:
            previous = _contribution(payment)
            self.context.stamp_updated(payment)

        # Merge: split amounts not sent this time keep their stored value
        payment.bonus_paid_on = fact.paid_on.isoformat()
        payment.bonus_total = fact.bonus_total
        if fact.standard_health_bonus is not None:
            payment.standard_health_bonus = fact.standard_health_bonus
        if fact.standard_welfare_bonus is not None:
            payment.standard_welfare_bonus = fact.standard_welfare_bonus
        if fact.source_payment_id:
            payment.source_payment_id = fact.source_payment_id

        current = _contribution(payment)
        month.bonus_total = (month.bonus_total or ZERO) - previous[0] + current[0]
        month.standard_health_bonus_total = (
            (month.standard_health_bonus_total or ZERO) - previous[1] + current[1]
        )
        month.standard_welfare_bonus_total = (
            (month.standard_welfare_bonus_total or ZERO) - previous[2] + current[2]
        )
        month.standard_bonus_total = (
            month.standard_health_bonus_total + month.standard_welfare_bonus_total
        )
        self.context.stamp_updated(month)

        logger.debug(
            f"Bonus {payment_id} for {employee_no} in {fact.year_month_key}: "
            f"total {previous[0]} -> {current[0]}"
        )
        return payment_id


def _contribution(payment: BonusPayment) -> Tuple[Decimal, Decimal, Decimal]:
    return (
        payment.bonus_total or ZERO,
        payment.standard_health_bonus or ZERO,
        payment.standard_welfare_bonus or ZERO,
    )


