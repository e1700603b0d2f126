"""
Activity events data source.

Dogs read through the `get_dog_timeline` RPC; transports and contacts filter the
`activity_events` table on the entity; memberships filter on the actor.
"""

from typing import Any

from pydantic import ValidationError

from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.activity_domain import ActivityEvent
from rescue_timeline.models.domain.session_domain import SessionContext
from rescue_timeline.models.domain.timeline_domain import TimelineScope, TimelineScopeKind
from rescue_timeline.services.data.mocks import get_mock_activity_events
from rescue_timeline.services.supabase.client import (
    SupabaseClient,
    SupabaseError,
    format_supabase_error,
)

logger = get_logger(__name__)

ACTIVITY_TABLE = "activity_events"
DEFAULT_ACTIVITY_LIMIT = 50


class ActivityDataError(Exception):
    """Custom exception for activity data operations."""

    def __init__(
        self,
        message: str,
        org_id: str | None = None,
        error_code: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.org_id = org_id
        self.error_code = error_code
        self.recoverable = recoverable


def normalize_activity_rows(rows: Any, org_id: str | None = None) -> list[ActivityEvent]:
    """Validate upstream rows into events; malformed rows are dropped."""
    if not isinstance(rows, list):
        rows = []

    events: list[ActivityEvent] = []
    dropped = 0
    for row in rows:
        if not isinstance(row, dict):
            dropped += 1
            continue
        try:
            events.append(ActivityEvent.model_validate(row))
        except ValidationError:
            dropped += 1

    if dropped:
        logger.info("Activity rows dropped during normalization", org_id=org_id, dropped=dropped)
    if rows and not events:
        logger.warning(
            "Activity batch normalized to zero valid events", org_id=org_id, row_count=len(rows)
        )
    return events


class ActivityEventsService:
    """Reads the audit trail for one entity scope."""

    def __init__(self, client: SupabaseClient | None):
        self.client = client

    async def fetch_for_scope(
        self,
        context: SessionContext,
        scope: TimelineScope,
        limit: int = DEFAULT_ACTIVITY_LIMIT,
    ) -> list[ActivityEvent]:
        """
        Fetch activity events for an entity, newest first.

        Raises:
            ActivityDataError: If there is no active organization or the read fails
        """
        org_id = context.org_id
        if not org_id:
            raise ActivityDataError(
                "No active organization selected.", error_code="no_org", recoverable=False
            )

        if self.client is None:
            rows = self._mock_rows(org_id, scope)
            return normalize_activity_rows(rows, org_id)[:limit]

        try:
            if scope.kind == TimelineScopeKind.DOG:
                rows = await self.client.rpc(
                    "get_dog_timeline",
                    {"p_org_id": org_id, "p_dog_id": scope.entity_id, "p_limit": limit},
                    access_token=context.access_token,
                )
            else:
                rows = await self.client.select(
                    ACTIVITY_TABLE,
                    filters=self._filters(org_id, scope),
                    order="created_at.desc",
                    limit=limit,
                    access_token=context.access_token,
                )
        except SupabaseError as e:
            raise ActivityDataError(
                format_supabase_error(e, f"Failed to load {scope.kind.value} activity"),
                org_id=org_id,
                error_code=e.code,
            ) from e

        events = normalize_activity_rows(rows, org_id)
        logger.debug(
            "Activity events fetched",
            org_id=org_id,
            scope=scope.kind.value,
            event_count=len(events),
        )
        return events

    @staticmethod
    def _filters(org_id: str, scope: TimelineScope) -> dict[str, Any]:
        if scope.kind == TimelineScopeKind.MEMBERSHIP:
            return {"org_id": org_id, "actor_membership_id": scope.entity_id}
        return {"org_id": org_id, "entity_type": scope.kind.value, "entity_id": scope.entity_id}

    @staticmethod
    def _mock_rows(org_id: str, scope: TimelineScope) -> list[dict[str, Any]]:
        if scope.kind == TimelineScopeKind.MEMBERSHIP:
            return get_mock_activity_events(org_id, actor_membership_id=scope.entity_id)
        return get_mock_activity_events(
            org_id, entity_type=scope.kind.value, entity_id=scope.entity_id
        )
