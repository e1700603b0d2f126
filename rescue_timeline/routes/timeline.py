"""
Timeline API Routes
Merged audit + schedule feed for one entity.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from rescue_timeline.auth.verify import auth_dependency, bearer_token
from rescue_timeline.dependencies import ServiceContainer, get_services
from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.api.timeline_response import TimelineResponse
from rescue_timeline.models.domain.session_domain import SessionContext
from rescue_timeline.models.domain.timeline_domain import (
    TimelineFilterMode,
    TimelineFilters,
    TimelineScope,
    TimelineScopeKind,
)
from rescue_timeline.services.data.activity_events import ActivityDataError
from rescue_timeline.services.data.calendar_events import CalendarDataError

logger = get_logger(__name__)

router = APIRouter(prefix="/orgs/{org_id}", tags=["timeline"])


@router.get("/timeline", response_model=TimelineResponse)
async def get_entity_timeline(
    org_id: str,
    scope: TimelineScopeKind = Query(..., description="dog, transport, contact or membership"),
    entity_id: str = Query(..., min_length=1, description="Entity ID"),
    mode: TimelineFilterMode = Query(default=TimelineFilterMode.IMPORTANT),
    show_audit: bool = Query(default=True, description="Include audit rows"),
    show_schedule: bool = Query(default=True, description="Include schedule rows"),
    limit: int | None = Query(default=None, ge=1, le=1000, description="Audit rows to load"),
    claims: dict = Depends(auth_dependency),
    token: str = Depends(bearer_token),
    services: ServiceContainer = Depends(get_services),
):
    """Get the merged timeline for an entity."""
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    context = SessionContext(org_id=org_id, access_token=token)
    timeline_scope = TimelineScope(kind=scope, entity_id=entity_id)
    filters = TimelineFilters(mode=mode, show_audit=show_audit, show_schedule=show_schedule)

    try:
        page = await services.timeline.get_timeline(context, timeline_scope, filters, limit)
    except (ActivityDataError, CalendarDataError) as e:
        logger.error(
            "Timeline load failed",
            user_id=user_id,
            org_id=org_id,
            scope=scope.value,
            error_code=e.error_code,
            error=str(e),
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return TimelineResponse.from_page(scope.value, entity_id, page)
