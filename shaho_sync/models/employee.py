"""
Shaho Sync - Employee Registry Models

Employees synchronised from the external payroll system, together with
their dependents (被扶養者).

Identity rules:
- employee_no is stored with all whitespace removed and is unique across
  the registry, regardless of name.
- name is stored with all whitespace removed; (employee_no, name) is the
  pair an incoming record must match to update an existing row.
"""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shaho_sync.models.base import BaseModel, AuditMixin

if TYPE_CHECKING:
    from shaho_sync.models.payroll import PayrollMonth


# Free-text address limit enforced at validation time
ADDRESS_MAX_LENGTH = 80

# Columns copied from the incoming record after trimming. Record field and
# column names coincide.
EMPLOYEE_TEXT_FIELDS = (
    "kana",
    "birth_date",
    "postal_code",
    "address",
    "current_address",
    "department",
    "work_prefecture",
    "personal_number",
    "basic_pension_number",
    "health_insured_number",
    "pension_insured_number",
    "health_acquisition",
    "pension_acquisition",
    "current_leave_status",
    "current_leave_start_date",
    "current_leave_end_date",
)

DEPENDENT_TEXT_FIELDS = (
    "relationship",
    "name_kanji",
    "name_kana",
    "birth_date",
    "gender",
    "personal_number",
    "basic_pension_number",
    "cohabitation_type",
    "address",
    "occupation",
    "dependent_start_date",
)


class ShahoEmployee(BaseModel, AuditMixin):
    """
    Employee row in the social-insurance registry.

    Rows are created on the first successful sync of an unseen employee
    number and merged on every later sync: only fields supplied by the
    payroll system overwrite stored values. Rows are never deleted here.
    """

    __tablename__ = "shaho_employees"

    # Identity
    employee_no: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
        comment="External employee number, whitespace removed",
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Employee name, whitespace removed",
    )
    kana: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Demographics
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    birth_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True,
        comment="Address on the resident register",
    )
    current_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    work_prefecture: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    personal_number: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True,
        comment="My Number",
    )
    basic_pension_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Standard remuneration (stored, never computed here)
    health_standard_monthly: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
        comment="Standard monthly remuneration (health/care insurance)",
    )
    welfare_standard_monthly: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
        comment="Standard monthly remuneration (welfare pension)",
    )

    # Insurance acquisition markers
    health_insured_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    pension_insured_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    health_acquisition: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    pension_acquisition: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    care_second_insured: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    exemption: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # Leave
    current_leave_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    current_leave_start_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    current_leave_end_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    has_dependent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    payroll_months: Mapped[List["PayrollMonth"]] = relationship(
        "PayrollMonth",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="PayrollMonth.year_month_key",
    )
    dependents: Mapped[List["Dependent"]] = relationship(
        "Dependent",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="Dependent.position",
    )

    def __repr__(self) -> str:
        return f"<ShahoEmployee(employee_no={self.employee_no}, name={self.name})>"


class Dependent(BaseModel, AuditMixin):
    """
    Dependent of an employee.

    The whole set is rebuilt from each sync that carries dependent data;
    individual rows are never merged.
    """

    __tablename__ = "shaho_dependents"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shaho_employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Order within the synced dependent list",
    )

    relationship_type: Mapped[Optional[str]] = mapped_column(
        "relationship", String(50), nullable=True,
        comment="Relationship to the employee (続柄)",
    )
    name_kanji: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    name_kana: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    birth_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    personal_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    basic_pension_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cohabitation_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    occupation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    annual_income: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
    )
    dependent_start_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    third_category_flag: Mapped[Optional[bool]] = mapped_column(
        Boolean, nullable=True,
        comment="National pension category 3 insured person",
    )

    employee: Mapped["ShahoEmployee"] = relationship("ShahoEmployee", back_populates="dependents")
