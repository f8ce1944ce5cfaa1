"""
Shaho Sync - Record Validator

Business-rule validation for one incoming employee record. Rules are
checked in a fixed priority and the first failure is reported; a record
produces at most one validation error.
"""

import re
from datetime import date
from typing import Dict, NamedTuple, Optional

from pydantic.alias_generators import to_camel
from sqlalchemy import Table

from shaho_sync.models.employee import (
    ADDRESS_MAX_LENGTH,
    DEPENDENT_TEXT_FIELDS,
    EMPLOYEE_TEXT_FIELDS,
    Dependent,
    ShahoEmployee,
)
from shaho_sync.schemas.employee_sync import ExternalDependentRecord, ExternalEmployeeRecord
from shaho_sync.utils.error_handling import ErrorCode
from shaho_sync.utils.normalization import (
    is_blank,
    is_leave_none,
    is_numeric_or_absent,
    normalize_employee_no,
    normalize_gender,
    normalize_has_dependent,
    normalize_name,
    normalize_string,
    parse_date,
)

_POSTAL_DIGITS = re.compile(r"^\d{7}$")
_POSTAL_HYPHENATED = re.compile(r"^\d{3}-\d{4}$")


class ValidationIssue(NamedTuple):
    code: ErrorCode
    message: str


class RecordValidator:
    """
    Validates external employee records.

    today is the business-calendar date used for future-date checks; dates
    that cannot be parsed are not rejected here.
    """

    def __init__(self, today: date):
        self.today = today

    def validate(self, record: ExternalEmployeeRecord) -> Optional[ValidationIssue]:
        """Return the first violated rule, or None when the record is valid."""
        if is_blank(record.employee_no):
            return ValidationIssue(ErrorCode.MISSING_FIELD, "employeeNo is required")

        if is_blank(record.name):
            return ValidationIssue(ErrorCode.MISSING_FIELD, "name is required")

        if self._is_future(record.birth_date):
            return ValidationIssue(ErrorCode.INVALID_DATE, "birthDate cannot be in the future")

        if not is_numeric_or_absent(record.health_standard_monthly):
            return ValidationIssue(
                ErrorCode.INVALID_AMOUNT, "healthStandardMonthly must be numeric"
            )
        if not is_numeric_or_absent(record.welfare_standard_monthly):
            return ValidationIssue(
                ErrorCode.INVALID_AMOUNT, "welfareStandardMonthly must be numeric"
            )

        issue = self._check_postal_code(record.postal_code)
        if issue:
            return issue

        for field, label in (("address", "address"), ("current_address", "currentAddress")):
            issue = self._check_address(getattr(record, field), label)
            if issue:
                return issue

        issue = self._check_employee_lengths(record)
        if issue:
            return issue

        issue = self._check_leave(record)
        if issue:
            return issue

        has_dependent = normalize_has_dependent(record.has_dependent)
        dependents = record.dependents or []
        if has_dependent and not dependents:
            return ValidationIssue(
                ErrorCode.DEPENDENT_REQUIRED,
                "hasDependent is set but no dependents were supplied",
            )

        for position, dependent in enumerate(dependents, start=1):
            issue = self._check_dependent(dependent, position, has_dependent)
            if issue:
                return issue

        return None

    def _is_future(self, value) -> bool:
        parsed = parse_date(value)
        return parsed is not None and parsed > self.today

    @staticmethod
    def _check_postal_code(value) -> Optional[ValidationIssue]:
        text = normalize_string(value)
        if text is None:
            return None
        if not _POSTAL_DIGITS.match(text.replace("-", "")):
            return ValidationIssue(
                ErrorCode.INVALID_FORMAT,
                "postalCode must be 7 digits (1234567 or 123-4567)",
            )
        if "-" in text and not _POSTAL_HYPHENATED.match(text):
            return ValidationIssue(
                ErrorCode.INVALID_FORMAT, "postalCode must be in 123-4567 format"
            )
        return None

    @staticmethod
    def _check_address(value, label: str) -> Optional[ValidationIssue]:
        text = normalize_string(value)
        if text is not None and len(text) > ADDRESS_MAX_LENGTH:
            return ValidationIssue(
                ErrorCode.INVALID_FORMAT,
                f"{label} must be at most {ADDRESS_MAX_LENGTH} characters (got {len(text)})",
            )
        return None

    @staticmethod
    def _check_leave(record: ExternalEmployeeRecord) -> Optional[ValidationIssue]:
        status = normalize_string(record.current_leave_status)
        start = normalize_string(record.current_leave_start_date)
        end = normalize_string(record.current_leave_end_date)

        if is_leave_none(status):
            if start:
                return ValidationIssue(
                    ErrorCode.INVALID_DATE,
                    "currentLeaveStartDate requires a currentLeaveStatus other than none",
                )
            if end:
                return ValidationIssue(
                    ErrorCode.INVALID_DATE,
                    "currentLeaveEndDate requires a currentLeaveStatus other than none",
                )

        if start and end:
            start_date, end_date = parse_date(start), parse_date(end)
            if start_date and end_date and end_date < start_date:
                return ValidationIssue(
                    ErrorCode.INVALID_DATE_RANGE,
                    "currentLeaveEndDate must not be before currentLeaveStartDate",
                )
        return None

    def _check_dependent(
        self,
        dependent: ExternalDependentRecord,
        position: int,
        has_dependent: bool,
    ) -> Optional[ValidationIssue]:
        label = f"dependent {position}"
        if has_dependent:
            if is_blank(dependent.relationship):
                return ValidationIssue(ErrorCode.MISSING_FIELD, f"{label}: relationship is required")
            if is_blank(dependent.name_kanji):
                return ValidationIssue(ErrorCode.MISSING_FIELD, f"{label}: nameKanji is required")

        if self._is_future(dependent.birth_date):
            return ValidationIssue(ErrorCode.INVALID_DATE, f"{label}: birthDate cannot be in the future")

        if not is_numeric_or_absent(dependent.annual_income):
            return ValidationIssue(ErrorCode.INVALID_AMOUNT, f"{label}: annualIncome must be numeric")

        issue = self._check_address(dependent.address, f"{label}: address")
        if issue:
            return issue

        values = {field: normalize_string(getattr(dependent, field)) for field in DEPENDENT_TEXT_FIELDS}
        return _check_lengths(Dependent.__table__, values, f"{label}: ")

    @staticmethod
    def _check_employee_lengths(record: ExternalEmployeeRecord) -> Optional[ValidationIssue]:
        """Values as they will be stored must fit their columns."""
        values = {field: normalize_string(getattr(record, field)) for field in EMPLOYEE_TEXT_FIELDS}
        values["employee_no"] = normalize_employee_no(record.employee_no)
        values["name"] = normalize_name(record.name)
        values["gender"] = normalize_gender(record.gender)
        return _check_lengths(ShahoEmployee.__table__, values)


def _check_lengths(
    table: Table,
    values: Dict[str, Optional[str]],
    prefix: str = "",
) -> Optional[ValidationIssue]:
    for column, value in values.items():
        limit = getattr(table.c[column].type, "length", None)
        if value is not None and limit is not None and len(value) > limit:
            return ValidationIssue(
                ErrorCode.INVALID_FORMAT,
                f"{prefix}{to_camel(column)} must be at most {limit} characters (got {len(value)})",
            )
    return None
