"""
Tests for monthly payroll aggregation and bonus payment maintenance.
"""

from datetime import date
from decimal import Decimal

import pytest

from shaho_sync.schemas.employee_sync import ExternalPayrollRecord
from shaho_sync.services.payroll_aggregator import (
    BONUS_ID_CONTENT_HASH,
    BonusFact,
    PayrollAggregator,
    SalaryFact,
    content_hash_payment_id,
    extract_facts,
    format_amount,
    sequence_payment_id,
)
from shaho_sync.services.sync_context import SyncContext
from shaho_sync.utils.error_handling import ErrorCode

from conftest import FIXED_NOW, count_bonus_payments, fetch_month


def entry(**data) -> ExternalPayrollRecord:
    return ExternalPayrollRecord.model_validate(data)


def bonus(paid_on: str, total: int, **kwargs) -> BonusFact:
    day = date.fromisoformat(paid_on)
    return BonusFact(
        year_month_key=f"{day.year:04d}{day.month:02d}",
        paid_on=day,
        bonus_total=Decimal(total),
        **kwargs,
    )


def new_call(session_factory, **kwargs) -> PayrollAggregator:
    """One aggregator per ingestion call."""
    context = SyncContext.create(actor="test-sync", tz_name="Asia/Tokyo", now=FIXED_NOW)
    return PayrollAggregator(session_factory, context, retries=0, retry_base_delay=0, **kwargs)


class TestExtractFacts:
    """Splitting payroll entries into salary and bonus facts."""

    def test_salary_only(self):
        facts = extract_facts(entry(yearMonth="2025-04", amount=300000, workedDays="20"))
        assert facts.salary == SalaryFact("202504", Decimal("300000"), 20)
        assert facts.bonus is None
        assert facts.issues == []

    def test_salary_requires_year_month(self):
        facts = extract_facts(entry(amount=300000))
        assert facts.salary is None
        assert facts.issues[0].code == ErrorCode.INVALID_YEAR_MONTH

    def test_invalid_year_month(self):
        facts = extract_facts(entry(yearMonth="2025-13", workedDays=20))
        assert facts.issues[0].code == ErrorCode.INVALID_YEAR_MONTH

    def test_bonus_month_comes_from_paid_on(self):
        facts = extract_facts(entry(
            yearMonth="2025-04",
            bonusPaidOn="2025/06/30",
            bonusTotal="500000",
            standardHealthBonus=500000,
        ))
        assert facts.salary is None
        assert facts.bonus.year_month_key == "202506"
        assert facts.bonus.paid_on == date(2025, 6, 30)
        assert facts.bonus.standard_health_bonus == Decimal("500000")

    def test_entry_with_salary_and_bonus(self):
        facts = extract_facts(entry(
            yearMonth="202506", amount=300000, bonusPaidOn="2025-06-10", bonusTotal=100000,
        ))
        assert facts.salary.year_month_key == "202506"
        assert facts.bonus.year_month_key == "202506"

    def test_bonus_without_valid_paid_on(self):
        facts = extract_facts(entry(bonusTotal=100000))
        assert facts.bonus is None
        assert facts.issues[0].code == ErrorCode.INVALID_BONUS

        facts = extract_facts(entry(bonusPaidOn="someday", bonusTotal=100000))
        assert facts.issues[0].code == ErrorCode.INVALID_BONUS

    def test_bonus_without_total(self):
        facts = extract_facts(entry(bonusPaidOn="2025-06-10"))
        assert facts.bonus is None
        assert facts.issues[0].code == ErrorCode.INVALID_BONUS

    @pytest.mark.parametrize("total", [0, "0", "abc"])
    def test_bonus_total_without_paid_on_is_reported(self, total):
        facts = extract_facts(entry(bonusTotal=total))
        assert facts.bonus is None
        assert [issue.code for issue in facts.issues] == [ErrorCode.INVALID_BONUS]
        assert "bonusPaidOn" in facts.issues[0].message

    def test_blank_bonus_fields_are_not_a_bonus(self):
        facts = extract_facts(entry(yearMonth="2025-04", amount=300000, bonusTotal=" ", bonusPaidOn=""))
        assert facts.bonus is None
        assert facts.issues == []

    def test_source_payment_id_longer_than_its_column(self):
        facts = extract_facts(entry(bonusPaidOn="2025-06-10", bonusTotal=1000, sourcePaymentId="P" * 101))
        assert facts.bonus is None
        assert facts.issues[0].code == ErrorCode.INVALID_BONUS
        assert "sourcePaymentId" in facts.issues[0].message

        facts = extract_facts(entry(bonusPaidOn="2025-06-10", bonusTotal=1000, sourcePaymentId="P" * 100))
        assert facts.bonus.source_payment_id == "P" * 100

    def test_one_bad_fact_keeps_the_other(self):
        facts = extract_facts(entry(amount=300000, bonusPaidOn="2025-06-10", bonusTotal=1000))
        assert facts.salary is None
        assert facts.bonus is not None
        assert len(facts.issues) == 1


class TestBonusPaymentIds:
    """Deterministic payment ids."""

    def test_format_amount(self):
        assert format_amount(Decimal("100000")) == "100000"
        assert format_amount(Decimal("100000.00")) == "100000"
        assert format_amount(Decimal("1234.50")) == "1234.5"

    def test_first_payment_of_the_day(self):
        assert sequence_payment_id(bonus("2025-06-01", 100000), [], set()) == "20250601-100000-1"

    def test_sequence_counts_same_day_ids(self):
        existing = ["20250601-100000-1", "20250602-5000-1"]
        payment_id = sequence_payment_id(bonus("2025-06-01", 150000), existing, {"20250601-100000-1"})
        assert payment_id == "20250601-150000-2"

    def test_unchanged_resend_reuses_its_id(self):
        existing = ["20250601-100000-1", "20250601-150000-2"]
        assert sequence_payment_id(bonus("2025-06-01", 150000), existing, set()) == "20250601-150000-2"

    def test_claimed_id_is_not_reused(self):
        existing = ["20250601-100000-1"]
        payment_id = sequence_payment_id(bonus("2025-06-01", 100000), existing, {"20250601-100000-1"})
        assert payment_id == "20250601-100000-2"

    def test_content_hash_is_stable(self):
        first = content_hash_payment_id("E1", bonus("2025-06-01", 100000), set())
        again = content_hash_payment_id("E1", bonus("2025-06-01", 100000), set())
        other_employee = content_hash_payment_id("E2", bonus("2025-06-01", 100000), set())

        assert first == again
        assert first != other_employee
        assert first.startswith("20250601-")

    def test_content_hash_separates_identical_payments(self):
        first = content_hash_payment_id("E1", bonus("2025-06-01", 100000), set())
        second = content_hash_payment_id("E1", bonus("2025-06-01", 100000), {first})
        assert second != first


class TestPayrollAggregator:
    """Transactional month aggregates."""

    @pytest.mark.asyncio
    async def test_salary_overwrites_instead_of_summing(self, session_factory, existing_employee):
        await new_call(session_factory).apply_salary(
            existing_employee.id, SalaryFact("202504", Decimal("300000"), 20)
        )
        await new_call(session_factory).apply_salary(
            existing_employee.id, SalaryFact("202504", Decimal("320000"), None)
        )

        month = await fetch_month(session_factory, "E1", "202504")
        assert month.amount == Decimal("320000")
        # Not sent the second time, so kept
        assert month.worked_days == 20
        assert month.year_month == "2025-04"
        assert month.bonus_total == 0

    @pytest.mark.asyncio
    async def test_same_day_bonuses_in_one_call(self, session_factory, existing_employee):
        aggregator = new_call(session_factory)
        first = await aggregator.apply_bonus(existing_employee.id, "E1", bonus("2025-06-01", 100000))
        second = await aggregator.apply_bonus(existing_employee.id, "E1", bonus("2025-06-01", 150000))

        assert first == "20250601-100000-1"
        assert second == "20250601-150000-2"

        month = await fetch_month(session_factory, "E1", "202506")
        assert month.bonus_total == Decimal("250000")
        assert len(month.bonus_payments) == 2

    @pytest.mark.asyncio
    async def test_exact_resend_is_idempotent(self, session_factory, existing_employee):
        facts = [
            bonus("2025-06-01", 100000, standard_health_bonus=Decimal("100000")),
            bonus("2025-06-01", 150000, standard_health_bonus=Decimal("150000")),
        ]
        for _ in range(2):
            aggregator = new_call(session_factory)
            for fact in facts:
                await aggregator.apply_bonus(existing_employee.id, "E1", fact)

        month = await fetch_month(session_factory, "E1", "202506")
        assert month.bonus_total == Decimal("250000")
        assert month.standard_health_bonus_total == Decimal("250000")
        assert await count_bonus_payments(session_factory) == 2

    @pytest.mark.asyncio
    async def test_identical_payment_in_a_later_call_needs_a_source_id(self, session_factory, existing_employee):
        for _ in range(2):
            await new_call(session_factory).apply_bonus(existing_employee.id, "E1", bonus("2025-06-01", 100000))

        # Without an upstream id the second payment lands on the first row
        assert (await fetch_month(session_factory, "E1", "202506")).bonus_total == Decimal("100000")
        assert await count_bonus_payments(session_factory) == 1

        for source_id in ("SUMMER-A", "SUMMER-B"):
            await new_call(session_factory).apply_bonus(
                existing_employee.id, "E1", bonus("2025-07-01", 100000, source_payment_id=source_id)
            )

        assert (await fetch_month(session_factory, "E1", "202507")).bonus_total == Decimal("200000")
        assert await count_bonus_payments(session_factory) == 3

    @pytest.mark.asyncio
    async def test_edit_changes_total_by_delta(self, session_factory, existing_employee):
        await new_call(session_factory).apply_bonus(
            existing_employee.id, "E1", bonus("2025-12-10", 400000, source_payment_id="PAY-1")
        )
        await new_call(session_factory).apply_bonus(
            existing_employee.id, "E1", bonus("2025-12-10", 200000, source_payment_id="PAY-2")
        )
        before = await fetch_month(session_factory, "E1", "202512")
        assert before.bonus_total == Decimal("600000")

        payment_id = await new_call(session_factory).apply_bonus(
            existing_employee.id, "E1", bonus("2025-12-10", 430000, source_payment_id="PAY-1")
        )

        after = await fetch_month(session_factory, "E1", "202512")
        assert payment_id == "PAY-1"
        assert after.bonus_total - before.bonus_total == Decimal("30000")
        assert len(after.bonus_payments) == 2

    @pytest.mark.asyncio
    async def test_standard_bonus_totals(self, session_factory, existing_employee):
        aggregator = new_call(session_factory)
        await aggregator.apply_bonus(existing_employee.id, "E1", bonus(
            "2025-07-10", 1000000,
            standard_health_bonus=Decimal("1000000"),
            standard_welfare_bonus=Decimal("1000000"),
        ))
        await aggregator.apply_bonus(existing_employee.id, "E1", bonus(
            "2025-07-25", 50000,
            standard_health_bonus=Decimal("50000"),
        ))

        month = await fetch_month(session_factory, "E1", "202507")
        assert month.bonus_total == Decimal("1050000")
        assert month.standard_health_bonus_total == Decimal("1050000")
        assert month.standard_welfare_bonus_total == Decimal("1000000")
        assert month.standard_bonus_total == Decimal("2050000")
        # Ordered by paid-on date, latest first
        assert [p.bonus_paid_on for p in month.bonus_payments] == ["2025-07-25", "2025-07-10"]

    @pytest.mark.asyncio
    async def test_omitted_split_keeps_stored_value(self, session_factory, existing_employee):
        await new_call(session_factory).apply_bonus(existing_employee.id, "E1", bonus(
            "2025-07-10", 300000,
            source_payment_id="S-1",
            standard_health_bonus=Decimal("300000"),
        ))
        await new_call(session_factory).apply_bonus(existing_employee.id, "E1", bonus(
            "2025-07-10", 310000, source_payment_id="S-1",
        ))

        month = await fetch_month(session_factory, "E1", "202507")
        payment = month.bonus_payments[0]
        assert payment.standard_health_bonus == Decimal("300000")
        assert month.standard_health_bonus_total == Decimal("300000")
        assert month.bonus_total == Decimal("310000")

    @pytest.mark.asyncio
    async def test_bonus_and_salary_share_the_month(self, session_factory, existing_employee):
        aggregator = new_call(session_factory)
        await aggregator.apply_salary(existing_employee.id, SalaryFact("202506", Decimal("300000"), 21))
        await aggregator.apply_bonus(existing_employee.id, "E1", bonus("2025-06-30", 500000))

        month = await fetch_month(session_factory, "E1", "202506")
        assert month.amount == Decimal("300000")
        assert month.bonus_total == Decimal("500000")
        assert month.updated_by == "test-sync"
        assert month.approved_by == "test-sync"

    @pytest.mark.asyncio
    async def test_content_hash_strategy_survives_reordering(self, session_factory, existing_employee):
        facts = [bonus("2025-06-01", 100000), bonus("2025-06-01", 150000)]

        aggregator = new_call(session_factory, bonus_id_strategy=BONUS_ID_CONTENT_HASH)
        for fact in facts:
            await aggregator.apply_bonus(existing_employee.id, "E1", fact)

        aggregator = new_call(session_factory, bonus_id_strategy=BONUS_ID_CONTENT_HASH)
        for fact in reversed(facts):
            await aggregator.apply_bonus(existing_employee.id, "E1", fact)

        month = await fetch_month(session_factory, "E1", "202506")
        assert month.bonus_total == Decimal("250000")
        assert len(month.bonus_payments) == 2
