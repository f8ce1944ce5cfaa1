"""
Shaho Sync - Payroll Aggregate Models

Monthly payroll summaries and the bonus payments that feed them:

    shaho_employees
        └── shaho_payroll_months   (one per employee per YYYYMM)
                └── shaho_bonus_payments   (one per disbursement)

Salary figures (amount, worked_days) are last-write-wins. The bonus totals
on PayrollMonth always equal the sum of the matching column over the
month's BonusPayment rows; they are maintained by delta inside the same
transaction that writes the payment.
"""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import ForeignKey, Integer, Numeric, String, Uuid, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shaho_sync.models.base import BaseModel, AuditMixin

if TYPE_CHECKING:
    from shaho_sync.models.employee import ShahoEmployee


ZERO = Decimal("0")


class PayrollMonth(BaseModel, AuditMixin):
    """Per-employee, per-month payroll aggregate."""

    __tablename__ = "shaho_payroll_months"
    __table_args__ = (
        UniqueConstraint("employee_id", "year_month_key", name="uq_payroll_month_employee_month"),
    )

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shaho_employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year_month_key: Mapped[str] = mapped_column(
        String(6),
        nullable=False,
        comment="Canonical month key, YYYYMM",
    )
    year_month: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="Display month, YYYY-MM",
    )

    # Monthly salary (overwrite semantics)
    amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
        comment="Monthly remuneration paid",
    )
    worked_days: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True,
        comment="Payment base days",
    )

    # Bonus aggregates (summed over bonus_payments)
    bonus_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=ZERO, nullable=False,
    )
    standard_health_bonus_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=ZERO, nullable=False,
    )
    standard_welfare_bonus_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=ZERO, nullable=False,
    )
    standard_bonus_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=ZERO, nullable=False,
        comment="standard_health_bonus_total + standard_welfare_bonus_total",
    )

    # Relationships
    employee: Mapped["ShahoEmployee"] = relationship("ShahoEmployee", back_populates="payroll_months")
    bonus_payments: Mapped[List["BonusPayment"]] = relationship(
        "BonusPayment",
        back_populates="payroll_month",
        cascade="all, delete-orphan",
        order_by=lambda: BonusPayment.bonus_paid_on.desc(),
    )

    def __repr__(self) -> str:
        return f"<PayrollMonth(employee_id={self.employee_id}, year_month={self.year_month_key})>"


class BonusPayment(BaseModel, AuditMixin):
    """
    One bonus disbursement within a month.

    payment_id is deterministic: the upstream source payment id when one is
    supplied, otherwise derived from the paid-on date and amount.
    """

    __tablename__ = "shaho_bonus_payments"
    __table_args__ = (
        UniqueConstraint("payroll_month_id", "payment_id", name="uq_bonus_payment_month_payment"),
    )

    payroll_month_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shaho_payroll_months.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment_id: Mapped[str] = mapped_column(String(100), nullable=False)
    source_payment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    bonus_paid_on: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="YYYY-MM-DD",
    )
    bonus_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )
    standard_health_bonus: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
        comment="Standard bonus amount (health/care insurance)",
    )
    standard_welfare_bonus: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
        comment="Standard bonus amount (welfare pension)",
    )

    payroll_month: Mapped["PayrollMonth"] = relationship("PayrollMonth", back_populates="bonus_payments")

    def __repr__(self) -> str:
        return f"<BonusPayment(payment_id={self.payment_id})>"
