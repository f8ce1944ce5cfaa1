"""
Shaho Sync - Services Package

Business logic services.
"""

from shaho_sync.services.sync_context import SyncContext
from shaho_sync.services.record_validator import RecordValidator, ValidationIssue
from shaho_sync.services.duplicate_guard import find_batch_duplicates
from shaho_sync.services.reservation_service import ReservationService
from shaho_sync.services.identity_reconciler import (
    IdentityReconciler,
    ReconcileAction,
    ReconcileDecision,
)
from shaho_sync.services.employee_writer import EmployeeUpsertWriter
from shaho_sync.services.payroll_aggregator import PayrollAggregator
from shaho_sync.services.dependent_replacer import DependentSetReplacer
from shaho_sync.services.employee_sync_service import EmployeeSyncService
from shaho_sync.services.export_service import ExportService

__all__ = [
    "SyncContext",
    "RecordValidator",
    "ValidationIssue",
    "find_batch_duplicates",
    "ReservationService",
    "IdentityReconciler",
    "ReconcileAction",
    "ReconcileDecision",
    "EmployeeUpsertWriter",
    "PayrollAggregator",
    "DependentSetReplacer",
    "EmployeeSyncService",
    "ExportService",
]
