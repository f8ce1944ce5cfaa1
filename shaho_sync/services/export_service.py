"""
Shaho Sync - Export Service

Read-only listing of synced employees with their monthly payroll
aggregates, bonus payments and dependents, for the CSV export screen.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shaho_sync.models.employee import ShahoEmployee
from shaho_sync.models.payroll import PayrollMonth
from shaho_sync.schemas.export import EmployeeExport, ExportResponse
from shaho_sync.utils.normalization import canonical_year_month

logger = logging.getLogger(__name__)

# Filter value meaning "every department / prefecture"
ALL_FILTER = "__ALL__"


def _filter_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value or value == ALL_FILTER:
        return None
    return value


class ExportService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_employees(
        self,
        department: Optional[str] = None,
        work_prefecture: Optional[str] = None,
        payroll_start_month: Optional[str] = None,
        payroll_end_month: Optional[str] = None,
    ) -> ExportResponse:
        """
        Employees ordered by employee number.

        Month bounds accept YYYY-MM or YYYYMM and are inclusive; a bound
        that cannot be parsed is ignored.
        """
        query = (
            select(ShahoEmployee)
            .options(
                selectinload(ShahoEmployee.payroll_months).selectinload(PayrollMonth.bonus_payments),
                selectinload(ShahoEmployee.dependents),
            )
            .order_by(ShahoEmployee.employee_no)
        )

        department = _filter_value(department)
        if department:
            query = query.where(ShahoEmployee.department == department)
        work_prefecture = _filter_value(work_prefecture)
        if work_prefecture:
            query = query.where(ShahoEmployee.work_prefecture == work_prefecture)

        start_key = canonical_year_month(payroll_start_month) if payroll_start_month else None
        end_key = canonical_year_month(payroll_end_month) if payroll_end_month else None

        result = await self.db.execute(query)
        employees: List[EmployeeExport] = []
        for employee in result.scalars().all():
            exported = EmployeeExport.model_validate(employee)
            exported.payrolls = [
                month for month in exported.payrolls
                if (start_key is None or month.year_month_key >= start_key)
                and (end_key is None or month.year_month_key <= end_key)
            ]
            employees.append(exported)

        logger.info(f"Exported {len(employees)} employees")
        return ExportResponse(employees=employees)
