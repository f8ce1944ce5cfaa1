"""
Shaho Sync - Employee Sync Service

Ingests a batch of employee records from the external payroll system.

Flow for one call:
1. Batch duplicate guard. A repeated employee number rejects the whole
   batch (400) before anything is written; the response also lists what
   record validation would have reported.
2. Record validation, reservation lookup and identity reconciliation,
   sequentially in batch order. Rejected records are reported and skipped,
   together with their payroll and dependent data.
3. One commit for every employee create/update of the batch.
4. Per-employee side effects (payroll aggregates, dependent sets) through a
   bounded worker pool. Failures are collected; once every unit has
   finished they surface as one storage error.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shaho_sync.config import settings
from shaho_sync.schemas.employee_sync import (
    ExternalDependentRecord,
    ExternalEmployeeRecord,
    SyncError,
    SyncResponse,
)
from shaho_sync.services.dependent_replacer import DependentSetReplacer
from shaho_sync.services.duplicate_guard import find_batch_duplicates
from shaho_sync.services.employee_writer import EmployeeUpsertWriter
from shaho_sync.services.identity_reconciler import IdentityReconciler, ReconcileAction
from shaho_sync.services.payroll_aggregator import (
    BonusFact,
    PayrollAggregator,
    SalaryFact,
    extract_facts,
)
from shaho_sync.services.record_validator import RecordValidator, ValidationIssue
from shaho_sync.services.reservation_service import ReservationService
from shaho_sync.services.sync_context import SyncContext
from shaho_sync.utils.concurrency import run_bounded
from shaho_sync.utils.error_handling import (
    BatchRejectedException,
    SyncStorageException,
)
from shaho_sync.utils.normalization import normalize_has_dependent

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "All records were processed successfully."


@dataclass
class EmployeeUnit:
    """Side effects for one accepted employee, applied after the commit."""
    index: int
    employee_no: str
    employee_id: uuid.UUID
    facts: List[Tuple[Optional[SalaryFact], Optional[BonusFact]]] = field(default_factory=list)
    replace_dependents: bool = False
    dependents: List[ExternalDependentRecord] = field(default_factory=list)
    has_dependent: bool = False

    @property
    def has_work(self) -> bool:
        return bool(self.facts) or self.replace_dependents


def _record_error(index: int, record: ExternalEmployeeRecord, issue: ValidationIssue) -> SyncError:
    return SyncError(
        index=index,
        employee_no=record.raw_employee_no,
        message=issue.message,
        code=issue.code.value,
    )


def _summary_message(errors: Sequence[SyncError], partial: bool) -> str:
    if len(errors) == 1:
        return errors[0].message
    if partial:
        return (
            f"{len(errors)} errors occurred, but the remaining records were processed. "
            f"See errors for details."
        )
    return f"{len(errors)} errors occurred. See errors for details."


class EmployeeSyncService:
    """
    Entry point of the payroll integration.

    Takes a session factory rather than a session: the employee commit and
    every side-effect unit each run in their own transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_concurrency: Optional[int] = None,
        bonus_id_strategy: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.max_concurrency = max_concurrency or settings.sync_max_concurrency
        self.bonus_id_strategy = bonus_id_strategy or settings.bonus_id_strategy

    async def sync(
        self,
        records: Sequence[ExternalEmployeeRecord],
        context: Optional[SyncContext] = None,
    ) -> SyncResponse:
        context = context or SyncContext.create()
        total = len(records)
        logger.info(f"Received employee sync batch with {total} records")

        validator = RecordValidator(context.today)
        issues = [validator.validate(record) for record in records]

        duplicates = find_batch_duplicates(records)
        if duplicates:
            validation_errors = [
                _record_error(index, record, issue)
                for index, (record, issue) in enumerate(zip(records, issues))
                if issue is not None
            ]
            all_errors = duplicates + validation_errors
            logger.warning(
                f"Rejected batch of {total}: {len(duplicates)} duplicate employee numbers"
            )
            raise BatchRejectedException(
                message=_summary_message(all_errors, partial=False),
                total=total,
                errors=[error.model_dump(by_alias=True) for error in all_errors],
            )

        errors: List[SyncError] = []
        units: List[EmployeeUnit] = []

        try:
            async with self.session_factory() as db:
                reserved = await ReservationService(db).get_pending_employee_nos()
                reconciler = IdentityReconciler(db, reserved)
                writer = EmployeeUpsertWriter(db, context)

                for index, (record, issue) in enumerate(zip(records, issues)):
                    if issue is not None:
                        logger.warning(f"Record {index} ({record.raw_employee_no}) rejected: {issue.code.value}")
                        errors.append(_record_error(index, record, issue))
                        continue

                    decision = await reconciler.reconcile(record)
                    if decision.action == ReconcileAction.REJECT:
                        logger.warning(
                            f"Record {index} ({decision.employee_no}) rejected: {decision.issue.code.value}"
                        )
                        errors.append(_record_error(index, record, decision.issue))
                        continue

                    employee_id = writer.stage(decision, record)
                    unit = self._plan_unit(index, record, decision.employee_no, employee_id, errors)
                    if unit.has_work:
                        units.append(unit)

                await writer.commit()
                created, updated = writer.created, writer.updated
        except SQLAlchemyError as e:
            raise SyncStorageException(
                "Failed to reconcile employee records",
                original_error=e,
            ) from e

        await self._run_side_effects(units, context)

        errors.sort(key=lambda error: error.index)
        has_errors = bool(errors)
        logger.info(
            f"Employee sync finished: total={total} created={created} updated={updated} "
            f"errors={len(errors)}"
        )
        return SyncResponse(
            total=total,
            processed=created + updated,
            created=created,
            updated=updated,
            errors=errors,
            message=_summary_message(errors, partial=True) if has_errors else SUCCESS_MESSAGE,
            has_errors=has_errors,
        )

    def _plan_unit(
        self,
        index: int,
        record: ExternalEmployeeRecord,
        employee_no: str,
        employee_id: uuid.UUID,
        errors: List[SyncError],
    ) -> EmployeeUnit:
        unit = EmployeeUnit(index=index, employee_no=employee_no, employee_id=employee_id)

        for entry in record.payrolls or []:
            facts = extract_facts(entry)
            for issue in facts.issues:
                errors.append(_record_error(index, record, issue))
            if facts.salary or facts.bonus:
                unit.facts.append((facts.salary, facts.bonus))

        # An explicit "no dependents" clears the stored set
        dependents = list(record.dependents or [])
        explicit_none = (
            record.has_dependent is not None
            and not normalize_has_dependent(record.has_dependent)
        )
        if dependents or explicit_none:
            unit.replace_dependents = True
            unit.dependents = dependents
            unit.has_dependent = normalize_has_dependent(record.has_dependent)

        return unit

    async def _run_side_effects(self, units: List[EmployeeUnit], context: SyncContext) -> None:
        if not units:
            return

        aggregator = PayrollAggregator(
            self.session_factory, context, bonus_id_strategy=self.bonus_id_strategy
        )
        replacer = DependentSetReplacer(self.session_factory, context)

        async def apply(unit: EmployeeUnit) -> None:
            # Facts of one employee run in input order
            for salary, bonus in unit.facts:
                if salary is not None:
                    await aggregator.apply_salary(unit.employee_id, salary)
                if bonus is not None:
                    await aggregator.apply_bonus(unit.employee_id, unit.employee_no, bonus)
            if unit.replace_dependents:
                await replacer.replace(unit.employee_id, unit.dependents, unit.has_dependent)

        outcomes = await run_bounded(units, apply, self.max_concurrency)
        failures = [outcome for outcome in outcomes if not outcome.ok]
        if not failures:
            return

        for outcome in failures:
            logger.error(
                f"Side effects failed for employee {outcome.unit.employee_no}",
                exc_info=outcome.error,
            )
        raise SyncStorageException(
            f"Employee records were saved, but payroll or dependent updates failed "
            f"for {len(failures)} employee(s)",
            original_error=failures[0].error,
            failed_employee_nos=[outcome.unit.employee_no for outcome in failures],
        )
