"""
Shaho Sync - Schemas Package

Pydantic schemas for request/response validation.
"""

from shaho_sync.schemas.employee_sync import (
    CamelModel,
    ExternalPayrollRecord,
    ExternalDependentRecord,
    ExternalEmployeeRecord,
    SyncError,
    SyncResult,
    SyncResponse,
    SyncRejectedResponse,
)
from shaho_sync.schemas.export import (
    BonusPaymentExport,
    PayrollMonthExport,
    DependentExport,
    EmployeeExport,
    ExportResponse,
)

__all__ = [
    "CamelModel",
    "ExternalPayrollRecord",
    "ExternalDependentRecord",
    "ExternalEmployeeRecord",
    "SyncError",
    "SyncResult",
    "SyncResponse",
    "SyncRejectedResponse",
    "BonusPaymentExport",
    "PayrollMonthExport",
    "DependentExport",
    "EmployeeExport",
    "ExportResponse",
]
