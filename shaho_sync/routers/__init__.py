"""
Shaho Sync - Routers Package

FastAPI route handlers.

Routers:
- employee_sync: webhook for the external payroll system
- export: read-only data for the CSV export screen
"""

from shaho_sync.routers import employee_sync, export

__all__ = ["employee_sync", "export"]
