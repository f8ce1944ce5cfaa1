"""
Shaho Sync - Export Router

Read-only data source for the CSV export screen.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from shaho_sync.dependencies import get_export_service, verify_api_key
from shaho_sync.schemas.export import ExportResponse
from shaho_sync.services.export_service import ExportService


router = APIRouter()


@router.get(
    "/csv-data",
    response_model=ExportResponse,
    summary="Employees with payroll and dependents for CSV export",
    dependencies=[Depends(verify_api_key)],
)
async def get_csv_data(
    department: Optional[str] = Query(None, description="Department, or __ALL__"),
    work_prefecture: Optional[str] = Query(None, alias="workPrefecture", description="Work prefecture, or __ALL__"),
    payroll_start_month: Optional[str] = Query(None, alias="payrollStartMonth", description="YYYY-MM or YYYYMM, inclusive"),
    payroll_end_month: Optional[str] = Query(None, alias="payrollEndMonth", description="YYYY-MM or YYYYMM, inclusive"),
    service: ExportService = Depends(get_export_service),
):
    """List employees matching the filters."""
    return await service.list_employees(
        department=department,
        work_prefecture=work_prefecture,
        payroll_start_month=payroll_start_month,
        payroll_end_month=payroll_end_month,
    )
