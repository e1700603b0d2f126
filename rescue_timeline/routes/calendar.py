"""
Calendar API Routes
HTTP endpoints for listing and creating organization calendar events.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from rescue_timeline.auth.verify import auth_dependency, bearer_token
from rescue_timeline.dependencies import ServiceContainer, get_services
from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.api.calendar_request import CreateCalendarEventRequest
from rescue_timeline.models.api.timeline_response import (
    CalendarEventsListResponse,
    CreateCalendarEventResponse,
)
from rescue_timeline.services.data.calendar_events import CalendarDataError, CalendarEventsQuery
from rescue_timeline.utils.dates import format_iso

logger = get_logger(__name__)

router = APIRouter(prefix="/orgs/{org_id}/calendar", tags=["calendar"])


@router.get("/events", response_model=CalendarEventsListResponse)
async def list_calendar_events(
    org_id: str,
    start_date: datetime | None = Query(default=None, description="Range start (start of day)"),
    end_date: datetime | None = Query(default=None, description="Range end (end of day)"),
    source_types: list[str] | None = Query(default=None, description="Source types to include"),
    dog_id: str | None = Query(default=None),
    contact_id: str | None = Query(default=None),
    stage: str | None = Query(default=None),
    visibility: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    assigned_membership_id: str | None = Query(default=None),
    claims: dict = Depends(auth_dependency),
    token: str = Depends(bearer_token),
    services: ServiceContainer = Depends(get_services),
):
    """List calendar events; served from mock data when no backend is configured."""
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    query = CalendarEventsQuery(
        org_id=org_id,
        start_date=format_iso(start_date) if start_date else None,
        end_date=format_iso(end_date) if end_date else None,
        source_types=tuple(source_types) if source_types else None,
        dog_id=dog_id,
        contact_id=contact_id,
        stage=stage,
        visibility=visibility,
        search=search,
        assigned_membership_id=assigned_membership_id,
    )

    try:
        events = await services.calendar.fetch_events(query, access_token=token)
    except CalendarDataError as e:
        logger.error("Calendar events load failed", user_id=user_id, org_id=org_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return CalendarEventsListResponse.from_events(events, live=services.calendar.is_live())


@router.post(
    "/events", response_model=CreateCalendarEventResponse, status_code=status.HTTP_201_CREATED
)
async def create_calendar_event(
    org_id: str,
    request: CreateCalendarEventRequest,
    claims: dict = Depends(auth_dependency),
    token: str = Depends(bearer_token),
    services: ServiceContainer = Depends(get_services),
):
    """Create a calendar event with its reminders."""
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        event = await services.calendar.create_event(
            request.to_new_event(org_id), access_token=token
        )
    except CalendarDataError as e:
        logger.error("Calendar event creation failed", user_id=user_id, org_id=org_id, error=str(e))
        code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if e.error_code == "backend_unavailable"
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=code, detail=str(e)) from e

    return CreateCalendarEventResponse(
        success=True,
        event=event.model_dump(),
        message=f"Event '{event.title}' created successfully",
    )
