"""
Shaho Sync - Employee Upsert Writer

Stages every create/update decision of a batch on one session and commits
them together: either all employee rows of the batch are written or none.
"""

import logging
import uuid
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shaho_sync.models.employee import EMPLOYEE_TEXT_FIELDS, ShahoEmployee
from shaho_sync.schemas.employee_sync import ExternalEmployeeRecord
from shaho_sync.services.identity_reconciler import ReconcileAction, ReconcileDecision
from shaho_sync.services.sync_context import SyncContext
from shaho_sync.utils.error_handling import SyncStorageException
from shaho_sync.utils.normalization import (
    normalize_flag,
    normalize_gender,
    normalize_has_dependent,
    normalize_string,
    to_decimal,
)

logger = logging.getLogger(__name__)


def employee_fields(record: ExternalEmployeeRecord) -> Dict[str, Any]:
    """
    Normalised column values supplied by a record.

    Absent values are left out so that an update only overwrites what the
    payroll system actually sent.
    """
    values: Dict[str, Any] = {
        field: normalize_string(getattr(record, field)) for field in EMPLOYEE_TEXT_FIELDS
    }
    values["gender"] = normalize_gender(record.gender)
    values["health_standard_monthly"] = to_decimal(record.health_standard_monthly)
    values["welfare_standard_monthly"] = to_decimal(record.welfare_standard_monthly)
    values["care_second_insured"] = normalize_flag(record.care_second_insured)
    values["exemption"] = normalize_flag(record.exemption)
    if record.has_dependent is not None:
        values["has_dependent"] = normalize_has_dependent(record.has_dependent)

    return {key: value for key, value in values.items() if value is not None}


class EmployeeUpsertWriter:
    """Accumulates employee writes for one batch."""

    def __init__(self, db: AsyncSession, context: SyncContext):
        self.db = db
        self.context = context
        self.created = 0
        self.updated = 0

    def stage(self, decision: ReconcileDecision, record: ExternalEmployeeRecord) -> uuid.UUID:
        """
        Stage one decision and return the employee's row id.

        New rows get their id here so that payroll and dependent side
        effects can target them once the batch is committed.
        """
        fields = employee_fields(record)

        if decision.action == ReconcileAction.UPDATE:
            employee = decision.existing
            for key, value in fields.items():
                setattr(employee, key, value)
            employee.name = decision.name
            self.context.stamp_updated(employee)
            self.updated += 1
            return employee.id

        if decision.action == ReconcileAction.CREATE:
            fields.setdefault("has_dependent", False)
            employee = ShahoEmployee(
                id=uuid.uuid4(),
                employee_no=decision.employee_no,
                name=decision.name,
                **fields,
            )
            self.context.stamp_created(employee)
            self.db.add(employee)
            self.created += 1
            return employee.id

        raise ValueError(f"Cannot stage a {decision.action.value} decision")

    async def commit(self) -> None:
        """Commit every staged write, or none of them."""
        if not (self.created or self.updated):
            return
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SyncStorageException(
                "Failed to save employee records; no employee was written",
                original_error=e,
            ) from e
        logger.info(f"Committed employees: {self.created} created, {self.updated} updated")
