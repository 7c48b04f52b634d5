"""Admin-only endpoints for queue monitoring."""

import datetime as dt
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from clinicq.core.exceptions import ForbiddenException
from clinicq.dependencies import DatabaseSession, get_current_user
from clinicq.schemas.auth import TokenUser
from clinicq.schemas.common import ApiResponse
from clinicq.schemas.queue import QueueSessionResponse, QueueStatsResponse, QueueStatus
from clinicq.services.queue_service import QueueService

router = APIRouter(prefix="/admin", tags=["Admin"])


async def require_admin(
    current_user: Annotated[TokenUser, Depends(get_current_user)],
) -> TokenUser:
    """
    Dependency to ensure current user has admin role.

    Raises:
        ForbiddenException: If user is not admin
    """
    if not current_user.is_admin:
        raise ForbiddenException("Admin access required")
    return current_user


AdminUser = Annotated[TokenUser, Depends(require_admin)]


@router.get(
    "/queues",
    response_model=ApiResponse[list[QueueSessionResponse]],
    summary="List queue sessions across doctors (admin only)",
)
async def list_all_queues(
    db: DatabaseSession,
    admin_user: AdminUser,
    day: dt.date | None = Query(None, alias="date", description="Only sessions of this date"),
    status_filter: QueueStatus | None = Query(None, alias="status"),
) -> ApiResponse[list[QueueSessionResponse]]:
    service = QueueService(db)
    return ApiResponse(data=await service.all_sessions(day=day, status=status_filter))


@router.get(
    "/queue-stats",
    response_model=ApiResponse[QueueStatsResponse],
    summary="Queue session counts (admin only)",
)
async def queue_stats(
    db: DatabaseSession,
    admin_user: AdminUser,
) -> ApiResponse[QueueStatsResponse]:
    """Count sessions by state, plus how many exist for today."""
    service = QueueService(db)
    return ApiResponse(data=await service.stats())
