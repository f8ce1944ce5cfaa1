"""
Shaho Sync - Approval Request Model

Approval requests are owned by the approval-workflow application. This
service only reads them, to find employee numbers that a pending new-hire
request has already claimed.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from shaho_sync.models.base import BaseModel


# Category label used by the approval workflow for new-hire registration
NEW_EMPLOYEE_CATEGORY = "新規社員登録"

APPROVAL_STATUS_PENDING = "pending"


class ApprovalRequest(BaseModel):
    """Approval request as written by the approval workflow."""

    __tablename__ = "approval_requests"

    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # [{"employeeNo": "...", ...}, ...]
    employee_diffs: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    # {"basicInfo": {"employeeNo": "...", ...}, ...}
    employee_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
