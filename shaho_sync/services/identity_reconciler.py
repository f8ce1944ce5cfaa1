"""
Shaho Sync - Identity Reconciler

Decides, per validated record, whether it creates a new employee, updates
an existing one, or is rejected.

- The employee number alone is the conflict key: a stored employee with the
  same number but a different name rejects the record.
- The (employee number, name) pair addresses the row to update.
- A number unknown to the registry but reserved by a pending new-hire
  request is rejected as well.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shaho_sync.models.employee import ShahoEmployee
from shaho_sync.schemas.employee_sync import ExternalEmployeeRecord
from shaho_sync.services.record_validator import ValidationIssue
from shaho_sync.utils.error_handling import ErrorCode
from shaho_sync.utils.normalization import normalize_employee_no, normalize_name


class ReconcileAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REJECT = "reject"


@dataclass
class ReconcileDecision:
    action: ReconcileAction
    employee_no: str
    name: str
    existing: Optional[ShahoEmployee] = None
    issue: Optional[ValidationIssue] = None


class IdentityReconciler:
    """
    Point lookups against the registry for one ingestion call.

    reserved is the set of normalized employee numbers held by pending
    new-hire requests, loaded once per call.
    """

    def __init__(self, db: AsyncSession, reserved: Set[str]):
        self.db = db
        self.reserved = reserved

    async def find_by_employee_no(self, employee_no: str) -> Optional[ShahoEmployee]:
        result = await self.db.execute(
            select(ShahoEmployee).where(ShahoEmployee.employee_no == employee_no)
        )
        return result.scalar_one_or_none()

    async def find_by_identity(self, employee_no: str, name: str) -> Optional[ShahoEmployee]:
        result = await self.db.execute(
            select(ShahoEmployee).where(
                ShahoEmployee.employee_no == employee_no,
                ShahoEmployee.name == name,
            )
        )
        return result.scalar_one_or_none()

    async def reconcile(self, record: ExternalEmployeeRecord) -> ReconcileDecision:
        employee_no = normalize_employee_no(record.employee_no)
        name = normalize_name(record.name)
        raw_no = record.raw_employee_no

        by_number = await self.find_by_employee_no(employee_no)
        if by_number is not None:
            if normalize_name(by_number.name) != name:
                return ReconcileDecision(
                    action=ReconcileAction.REJECT,
                    employee_no=employee_no,
                    name=name,
                    issue=ValidationIssue(
                        ErrorCode.EMPLOYEE_NO_CONFLICT,
                        f"employeeNo {raw_no} is already registered under a different name "
                        f"(registered: {by_number.name}, received: {record.name}); "
                        f"two employees cannot share an employee number",
                    ),
                )
            existing = await self.find_by_identity(employee_no, name) or by_number
            return ReconcileDecision(
                action=ReconcileAction.UPDATE,
                employee_no=employee_no,
                name=name,
                existing=existing,
            )

        if employee_no in self.reserved:
            return ReconcileDecision(
                action=ReconcileAction.REJECT,
                employee_no=employee_no,
                name=name,
                issue=ValidationIssue(
                    ErrorCode.RESERVATION_CONFLICT,
                    f"employeeNo {raw_no} is reserved by a pending new-employee approval request; "
                    f"it cannot be registered until that request is approved or returned",
                ),
            )

        return ReconcileDecision(action=ReconcileAction.CREATE, employee_no=employee_no, name=name)
