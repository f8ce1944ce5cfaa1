"""
Shaho Sync - FastAPI Dependencies

Shared dependencies for API-key authentication and database access.
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shaho_sync.config import Settings, get_settings
from shaho_sync.database import get_async_session, get_session_factory
from shaho_sync.services.employee_sync_service import EmployeeSyncService
from shaho_sync.services.export_service import ExportService
from shaho_sync.utils.error_handling import AuthenticationException

logger = logging.getLogger(__name__)

# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


async def verify_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Check the payroll system's shared secret.

    The key can be provided via:
    1. X-API-Key header
    2. Authorization: Bearer <key> header

    When no key is configured the request is let through with a warning.

    Raises:
        AuthenticationException: If the key is missing or wrong
    """
    expected = settings.sync_api_key
    if not expected:
        logger.warning("SYNC_API_KEY is not configured; accepting request without authentication")
        return

    provided = x_api_key or (credentials.credentials if credentials else None)
    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        raise AuthenticationException("Invalid API key")


async def get_employee_sync_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> EmployeeSyncService:
    return EmployeeSyncService(session_factory)


async def get_export_service(
    db: AsyncSession = Depends(get_async_session),
) -> ExportService:
    return ExportService(db)
