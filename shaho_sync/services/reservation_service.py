"""
Shaho Sync - Reservation Lookup

Employee numbers claimed by new-hire requests still waiting for approval.
A record for one of these numbers may not create a new employee until the
request is approved or sent back.
"""

import logging
from typing import Any, Iterable, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shaho_sync.models.approval import (
    ApprovalRequest,
    APPROVAL_STATUS_PENDING,
    NEW_EMPLOYEE_CATEGORY,
)
from shaho_sync.utils.normalization import normalize_employee_no

logger = logging.getLogger(__name__)


class ReservationService:
    """Read-only view over pending new-hire approval requests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_pending_employee_nos(self) -> Set[str]:
        result = await self.db.execute(
            select(ApprovalRequest.employee_diffs, ApprovalRequest.employee_data).where(
                ApprovalRequest.status == APPROVAL_STATUS_PENDING,
                ApprovalRequest.category == NEW_EMPLOYEE_CATEGORY,
            )
        )

        reserved: Set[str] = set()
        for employee_diffs, employee_data in result.all():
            for candidate in self._candidates(employee_diffs, employee_data):
                employee_no = normalize_employee_no(candidate)
                if employee_no:
                    reserved.add(employee_no)

        logger.debug(f"{len(reserved)} employee numbers reserved by pending requests")
        return reserved

    @staticmethod
    def _candidates(employee_diffs: Optional[Any], employee_data: Optional[Any]) -> Iterable[Any]:
        if isinstance(employee_diffs, list):
            for diff in employee_diffs:
                if isinstance(diff, dict) and diff.get("employeeNo"):
                    yield diff["employeeNo"]

        if isinstance(employee_data, dict):
            basic_info = employee_data.get("basicInfo")
            if isinstance(basic_info, dict) and basic_info.get("employeeNo"):
                yield basic_info["employeeNo"]
