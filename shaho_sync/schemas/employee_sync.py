"""
Shaho Sync - Employee Sync Schemas

Pydantic schemas for the payroll-system webhook: the records it posts and
the result returned to it. Keys are camelCase on the wire.

Incoming values are deliberately loose (numbers may arrive as strings,
flags as "1"/"on"/"有", ...). Normalisation and business validation happen
in the services, so a malformed value rejects one record instead of the
whole request.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Loosely typed scalars as sent by the payroll system
NumberLike = Union[int, float, str]
FlagLike = Union[bool, int, str]
IdLike = Union[str, int]


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ===========================================
# INCOMING RECORDS
# ===========================================

class ExternalPayrollRecord(CamelModel):
    """
    One payroll entry. Carries a monthly salary fact, a bonus fact, or both.
    """
    year_month: Optional[IdLike] = None
    amount: Optional[NumberLike] = None
    worked_days: Optional[NumberLike] = None

    bonus_paid_on: Optional[str] = None
    bonus_total: Optional[NumberLike] = None
    standard_health_bonus: Optional[NumberLike] = None
    standard_welfare_bonus: Optional[NumberLike] = None
    source_payment_id: Optional[IdLike] = None


class ExternalDependentRecord(CamelModel):
    """Dependent as sent by the payroll system."""
    relationship: Optional[str] = None
    name_kanji: Optional[str] = None
    name_kana: Optional[str] = None
    birth_date: Optional[str] = None
    gender: Optional[str] = None
    personal_number: Optional[IdLike] = None
    basic_pension_number: Optional[IdLike] = None
    cohabitation_type: Optional[str] = None
    address: Optional[str] = None
    occupation: Optional[str] = None
    annual_income: Optional[NumberLike] = None
    dependent_start_date: Optional[str] = None
    third_category_flag: Optional[FlagLike] = None


class ExternalEmployeeRecord(CamelModel):
    """Employee record as sent by the payroll system."""
    employee_no: Optional[IdLike] = None
    name: Optional[str] = None
    kana: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[str] = None
    postal_code: Optional[IdLike] = None
    address: Optional[str] = None
    current_address: Optional[str] = None
    department: Optional[str] = None
    work_prefecture: Optional[str] = None
    personal_number: Optional[IdLike] = None
    basic_pension_number: Optional[IdLike] = None
    health_standard_monthly: Optional[NumberLike] = None
    welfare_standard_monthly: Optional[NumberLike] = None
    health_insured_number: Optional[IdLike] = None
    pension_insured_number: Optional[IdLike] = None
    health_acquisition: Optional[str] = None
    pension_acquisition: Optional[str] = None
    current_leave_status: Optional[str] = None
    current_leave_start_date: Optional[str] = None
    current_leave_end_date: Optional[str] = None
    care_second_insured: Optional[FlagLike] = None
    exemption: Optional[FlagLike] = None
    has_dependent: Optional[FlagLike] = None
    dependents: Optional[List[ExternalDependentRecord]] = None
    payrolls: Optional[List[ExternalPayrollRecord]] = None

    @property
    def raw_employee_no(self) -> Optional[str]:
        """Employee number exactly as received, for error reporting."""
        return None if self.employee_no is None else str(self.employee_no)


# ===========================================
# RESULTS
# ===========================================

class SyncError(CamelModel):
    """A per-record (or per-entry) error reported back to the caller."""
    index: int
    employee_no: Optional[str] = None
    message: str
    code: Optional[str] = None


class SyncResult(CamelModel):
    """Counts and errors for one ingestion call."""
    total: int
    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: List[SyncError] = Field(default_factory=list)


class SyncResponse(SyncResult):
    """200 response: processed batch, possibly with per-record errors."""
    message: str
    has_errors: bool


class SyncRejectedResponse(SyncResult):
    """400 response: batch rejected before any write."""
    error: str = "Bad Request"
    message: str
