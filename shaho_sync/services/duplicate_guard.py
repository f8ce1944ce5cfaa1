"""
Shaho Sync - Batch Duplicate Guard

Detects employee numbers that occur more than once in one batch. Any hit
rejects the whole batch before a single row is written.
"""

from typing import Dict, List, Sequence

from shaho_sync.schemas.employee_sync import ExternalEmployeeRecord, SyncError
from shaho_sync.utils.error_handling import ErrorCode
from shaho_sync.utils.normalization import normalize_employee_no


def find_batch_duplicates(records: Sequence[ExternalEmployeeRecord]) -> List[SyncError]:
    """
    Return one error per repeated occurrence, in batch order.

    The first occurrence of an employee number is never reported; each later
    occurrence is reported with both positions. Records without an employee
    number are left to the validator.
    """
    first_seen: Dict[str, int] = {}
    duplicates: List[SyncError] = []

    for index, record in enumerate(records):
        employee_no = normalize_employee_no(record.employee_no)
        if not employee_no:
            continue
        if employee_no in first_seen:
            first_index = first_seen[employee_no]
            duplicates.append(SyncError(
                index=index,
                employee_no=record.raw_employee_no,
                message=(
                    f"employeeNo {record.raw_employee_no} appears more than once in the batch "
                    f"(first at index {first_index}, again at index {index})"
                ),
                code=ErrorCode.DUPLICATE_IN_BATCH.value,
            ))
        else:
            first_seen[employee_no] = index

    return duplicates
