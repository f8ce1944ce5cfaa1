"""
Shaho Sync - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from shaho_sync.models.base import BaseModel, TimestampMixin, AuditMixin
from shaho_sync.models.employee import ShahoEmployee, Dependent, ADDRESS_MAX_LENGTH
from shaho_sync.models.payroll import PayrollMonth, BonusPayment
from shaho_sync.models.approval import (
    ApprovalRequest,
    NEW_EMPLOYEE_CATEGORY,
    APPROVAL_STATUS_PENDING,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    "ShahoEmployee",
    "Dependent",
    "ADDRESS_MAX_LENGTH",
    "PayrollMonth",
    "BonusPayment",
    "ApprovalRequest",
    "NEW_EMPLOYEE_CATEGORY",
    "APPROVAL_STATUS_PENDING",
]
