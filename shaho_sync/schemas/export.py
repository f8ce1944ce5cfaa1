"""
Shaho Sync - Export Schemas

Read-only projection of the registry used by the CSV export screen.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shaho_sync.schemas.employee_sync import CamelModel


class ExportModel(CamelModel):
    """Export rows are built straight from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class BonusPaymentExport(ExportModel):
    payment_id: str
    source_payment_id: Optional[str] = None
    bonus_paid_on: str
    bonus_total: float
    standard_health_bonus: Optional[float] = None
    standard_welfare_bonus: Optional[float] = None


class PayrollMonthExport(ExportModel):
    year_month: str
    year_month_key: str
    amount: Optional[float] = None
    worked_days: Optional[int] = None
    bonus_total: float = 0
    standard_health_bonus_total: float = 0
    standard_welfare_bonus_total: float = 0
    standard_bonus_total: float = 0
    bonus_payments: List[BonusPaymentExport] = []


class DependentExport(ExportModel):
    relationship: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("relationship_type", "relationship"),
        serialization_alias="relationship",
    )
    name_kanji: Optional[str] = None
    name_kana: Optional[str] = None
    birth_date: Optional[str] = None
    gender: Optional[str] = None
    personal_number: Optional[str] = None
    basic_pension_number: Optional[str] = None
    cohabitation_type: Optional[str] = None
    address: Optional[str] = None
    occupation: Optional[str] = None
    annual_income: Optional[float] = None
    dependent_start_date: Optional[str] = None
    third_category_flag: Optional[bool] = None


class EmployeeExport(ExportModel):
    id: UUID
    employee_no: str
    name: str
    kana: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[str] = None
    current_address: Optional[str] = None
    department: Optional[str] = None
    work_prefecture: Optional[str] = None
    personal_number: Optional[str] = None
    basic_pension_number: Optional[str] = None
    health_standard_monthly: Optional[float] = None
    welfare_standard_monthly: Optional[float] = None
    health_insured_number: Optional[str] = None
    pension_insured_number: Optional[str] = None
    health_acquisition: Optional[str] = None
    pension_acquisition: Optional[str] = None
    care_second_insured: Optional[bool] = None
    exemption: Optional[bool] = None
    current_leave_status: Optional[str] = None
    current_leave_start_date: Optional[str] = None
    current_leave_end_date: Optional[str] = None
    has_dependent: bool = False
    payrolls: List[PayrollMonthExport] = Field(
        default_factory=list,
        validation_alias=AliasChoices("payroll_months", "payrolls"),
        serialization_alias="payrolls",
    )
    dependents: List[DependentExport] = []


class ExportResponse(ExportModel):
    employees: List[EmployeeExport]
