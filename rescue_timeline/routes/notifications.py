"""
Notification API Routes
Device registration and reminder sync.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from rescue_timeline.auth.verify import auth_dependency, bearer_token
from rescue_timeline.dependencies import ServiceContainer, get_services
from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.api.notification_request import (
    DeviceResponse,
    NotificationSyncRequest,
    RegisterDeviceRequest,
    SyncStatusResponse,
)
from rescue_timeline.models.domain.notification_domain import DeviceRegistration
from rescue_timeline.models.domain.session_domain import Platform, SessionContext
from rescue_timeline.services.notifications.reconciler import NotificationReconciler
from rescue_timeline.services.notifications.scheduler import (
    InMemoryNotificationScheduler,
    NotificationScheduler,
    NotificationSchedulerError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _resolve_scheduler(
    services: ServiceContainer, request: NotificationSyncRequest
) -> NotificationScheduler:
    if request.device_id:
        return services.scheduler_for(request.device_id)
    if request.org_id and request.platform != Platform.WEB:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="device_id is required to sync reminders",
        )
    # Not reached by the reconciler: the org and platform gates stop first
    return InMemoryNotificationScheduler()


def _require_user(claims: dict) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id


async def _load_device(services: ServiceContainer, device_id: str) -> DeviceRegistration | None:
    try:
        return await services.get_device(device_id)
    except NotificationSchedulerError as e:
        logger.error("Device lookup failed", device_id=device_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Device registry unavailable"
        ) from e


def _ensure_owner(device: DeviceRegistration, user_id: str) -> None:
    if device.owner_id and device.owner_id != user_id:
        logger.warning("Device access denied", device_id=device.device_id, user_id=user_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Device not owned")


async def _authorize_sync(
    services: ServiceContainer, request: NotificationSyncRequest, user_id: str
) -> None:
    if not request.device_id:
        return
    device = await _load_device(services, request.device_id)
    if device is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not registered")
    _ensure_owner(device, user_id)


def _ensure_not_syncing(reconciler: NotificationReconciler) -> None:
    if reconciler.is_syncing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sync already running")


@router.post("/sync", response_model=SyncStatusResponse)
async def sync_notifications(
    request: NotificationSyncRequest,
    claims: dict = Depends(auth_dependency),
    token: str = Depends(bearer_token),
    services: ServiceContainer = Depends(get_services),
):
    """Reconcile a device's scheduled reminders with the calendar."""
    user_id = _require_user(claims)
    await _authorize_sync(services, request, user_id)
    reconciler = services.reconciler_for(request.device_id)
    _ensure_not_syncing(reconciler)

    scheduler = _resolve_scheduler(services, request)
    context = SessionContext(
        org_id=request.org_id,
        platform=request.platform,
        device_id=request.device_id,
        access_token=token,
    )
    result = await reconciler.sync(context, scheduler)
    logger.info(
        "Notification sync requested",
        user_id=user_id,
        device_id=request.device_id,
        state=result.state.value,
    )
    return SyncStatusResponse.from_status(result)


@router.post("/resume", response_model=SyncStatusResponse)
async def app_resumed(
    request: NotificationSyncRequest,
    claims: dict = Depends(auth_dependency),
    token: str = Depends(bearer_token),
    services: ServiceContainer = Depends(get_services),
):
    """Refresh cached entity data and re-sync reminders after the app returns to foreground."""
    user_id = _require_user(claims)
    await _authorize_sync(services, request, user_id)
    reconciler = services.reconciler_for(request.device_id)
    _ensure_not_syncing(reconciler)

    scheduler = _resolve_scheduler(services, request)
    context = SessionContext(
        org_id=request.org_id,
        platform=request.platform,
        device_id=request.device_id,
        access_token=token,
    )
    result = await reconciler.on_app_resume(context, scheduler, services.cache)
    return SyncStatusResponse.from_status(result)


@router.put("/devices/{device_id}", response_model=DeviceResponse)
async def register_device(
    device_id: str,
    request: RegisterDeviceRequest,
    claims: dict = Depends(auth_dependency),
    services: ServiceContainer = Depends(get_services),
):
    """Register a device and the notification permission it reports."""
    user_id = _require_user(claims)

    existing = await _load_device(services, device_id)
    if existing is not None:
        _ensure_owner(existing, user_id)

    try:
        registration = await services.register_device(
            device_id,
            request.org_id,
            request.platform.value,
            request.permission,
            owner_id=user_id,
        )
    except NotificationSchedulerError as e:
        logger.error(
            "Device registration failed", user_id=user_id, device_id=device_id, error=str(e)
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Device registry unavailable"
        ) from e

    return DeviceResponse(**registration.to_dict())
