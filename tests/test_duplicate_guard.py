"""
Tests for in-batch duplicate detection.
"""

from shaho_sync.schemas.employee_sync import ExternalEmployeeRecord
from shaho_sync.services.duplicate_guard import find_batch_duplicates


def batch(*employee_nos):
    return [
        ExternalEmployeeRecord.model_validate({"employeeNo": no, "name": f"社員{i}"})
        for i, no in enumerate(employee_nos)
    ]


class TestBatchDuplicateGuard:

    def test_unique_batch(self):
        assert find_batch_duplicates(batch("E1", "E2", "E3")) == []

    def test_later_occurrences_reported(self):
        errors = find_batch_duplicates(batch("E1", "E2", "E1", "E1"))

        assert [error.index for error in errors] == [2, 3]
        assert all(error.code == "DUPLICATE_IN_BATCH" for error in errors)
        assert "first at index 0" in errors[0].message
        assert "again at index 2" in errors[0].message
        assert "again at index 3" in errors[1].message

    def test_whitespace_variants_collide(self):
        errors = find_batch_duplicates(batch("E 1", "E1", "E　1"))

        assert [error.index for error in errors] == [1, 2]
        # The number is reported as sent
        assert errors[1].employee_no == "E　1"

    def test_numeric_and_string_ids_collide(self):
        errors = find_batch_duplicates(batch(1001, "1001"))
        assert len(errors) == 1
        assert errors[0].index == 1

    def test_blank_ids_are_ignored(self):
        assert find_batch_duplicates(batch("", " ", None)) == []
