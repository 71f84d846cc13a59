"""Activity history API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query

from app.api.deps import CurrentUser, DBSession
from app.models.activity_log import ActivityLogListResponse, ActivityLogResponse
from app.services.activity_log import get_activity_history

router = APIRouter(prefix="/api/activity", tags=["Activity"])


@router.get("", response_model=ActivityLogListResponse)
def list_activity_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    entity_type: str | None = Query(default=None, description="Filter by entity type"),
    entity_id: int | None = Query(default=None, description="Filter by entity id"),
    start_date: datetime | None = Query(default=None, description="Earliest entry"),
    end_date: datetime | None = Query(default=None, description="Latest entry"),
    limit: int = Query(default=50, ge=1, le=100, description="Maximum number of entries"),
    offset: int = Query(default=0, ge=0, description="Number of entries to skip"),
) -> ActivityLogListResponse:
    """The caller's own activity, newest first."""
    entries, total = get_activity_history(
        session,
        user_id=current_user.id,
        entity_type=entity_type,
        entity_id=entity_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return ActivityLogListResponse(
        logs=[ActivityLogResponse.model_validate(e) for e in entries],
        total=total,
    )
