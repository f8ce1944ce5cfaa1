"""
Shaho Sync - Employee Sync Router

Webhook called by the external payroll system with a batch of employee
records.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from shaho_sync.dependencies import get_employee_sync_service, verify_api_key
from shaho_sync.schemas.employee_sync import (
    ExternalEmployeeRecord,
    SyncRejectedResponse,
    SyncResponse,
)
from shaho_sync.services.employee_sync_service import EmployeeSyncService


router = APIRouter()


@router.post(
    "/webhook",
    response_model=SyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync employees from the payroll system",
    description=(
        "Create or update employees, their monthly payroll aggregates and "
        "dependents. Per-record problems are reported in errors with a 200; "
        "a batch repeating an employee number is rejected with a 400."
    ),
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": SyncRejectedResponse},
    },
    dependencies=[Depends(verify_api_key)],
)
async def sync_employees(
    records: List[ExternalEmployeeRecord],
    service: EmployeeSyncService = Depends(get_employee_sync_service),
):
    """Ingest one batch of employee records."""
    return await service.sync(records)
