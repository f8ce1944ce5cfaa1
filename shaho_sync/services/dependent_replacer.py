"""
Shaho Sync - Dependent Set Replacer

Rebuilds an employee's dependents from the list carried by a sync. The
delete and the re-insert run in one transaction that first locks the
employee row, so readers never see a half-replaced set and two syncs for
the same employee cannot interleave.
"""

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shaho_sync.config import settings
from shaho_sync.models.employee import Dependent, ShahoEmployee
from shaho_sync.schemas.employee_sync import ExternalDependentRecord
from shaho_sync.services.sync_context import SyncContext
from shaho_sync.utils.concurrency import retry_transaction
from shaho_sync.utils.normalization import (
    normalize_string,
    normalize_tristate_flag,
    to_decimal,
)

logger = logging.getLogger(__name__)


def build_dependent(
    employee_id: uuid.UUID,
    record: ExternalDependentRecord,
    position: int,
) -> Dependent:
    return Dependent(
        employee_id=employee_id,
        position=position,
        relationship_type=normalize_string(record.relationship),
        name_kanji=normalize_string(record.name_kanji),
        name_kana=normalize_string(record.name_kana),
        birth_date=normalize_string(record.birth_date),
        gender=normalize_string(record.gender),
        personal_number=normalize_string(record.personal_number),
        basic_pension_number=normalize_string(record.basic_pension_number),
        cohabitation_type=normalize_string(record.cohabitation_type),
        address=normalize_string(record.address),
        occupation=normalize_string(record.occupation),
        annual_income=to_decimal(record.annual_income),
        dependent_start_date=normalize_string(record.dependent_start_date),
        third_category_flag=normalize_tristate_flag(record.third_category_flag),
    )


class DependentSetReplacer:
    """Replaces dependent sets, one transaction per employee."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        context: SyncContext,
        retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.context = context
        self.retries = settings.sync_transaction_retries if retries is None else retries
        self.retry_base_delay = (
            settings.sync_retry_base_delay_seconds if retry_base_delay is None else retry_base_delay
        )

    async def replace(
        self,
        employee_id: uuid.UUID,
        dependents: Sequence[ExternalDependentRecord],
        has_dependent: bool,
    ) -> int:
        """
        Replace the employee's dependents and return how many were written.

        The set is emptied when has_dependent is false or no dependents were
        sent.
        """
        keep = list(dependents) if has_dependent else []

        async def operation() -> int:
            async with self.session_factory() as db:
                async with db.begin():
                    await db.execute(
                        select(ShahoEmployee.id)
                        .where(ShahoEmployee.id == employee_id)
                        .with_for_update()
                    )
                    await db.execute(delete(Dependent).where(Dependent.employee_id == employee_id))
                    for position, record in enumerate(keep):
                        dependent = build_dependent(employee_id, record, position)
                        self.context.stamp_created(dependent)
                        db.add(dependent)
            return len(keep)

        written = await retry_transaction(
            operation,
            retries=self.retries,
            base_delay=self.retry_base_delay,
            description=f"dependents for employee {employee_id}",
        )
        logger.debug(f"Replaced dependents for employee {employee_id}: {written} written")
        return written
