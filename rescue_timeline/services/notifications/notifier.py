"""
Status messages and the best-effort toast side channel.

`SmartNotifier` always records the latest status; forwarding it as a toast is
optional and a failing toast never affects the caller.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass

from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.notification_domain import StatusVariant
from rescue_timeline.services.infrastructure.redis_client import FastRedisClient

logger = get_logger(__name__)

TOAST_CHANNEL_PREFIX = "toasts:"


@dataclass(frozen=True, slots=True)
class SmartMessage:
    variant: StatusVariant
    text: str


class ToastNotifier(ABC):
    @abstractmethod
    async def show(self, org_id: str | None, variant: StatusVariant, text: str) -> None: ...


class NoopToastNotifier(ToastNotifier):
    async def show(self, org_id: str | None, variant: StatusVariant, text: str) -> None:
        return None


class RedisToastNotifier(ToastNotifier):
    """Publishes `{variant, text}` to `toasts:<org_id>` for connected clients."""

    def __init__(self, redis_client: FastRedisClient):
        self.redis = redis_client

    async def show(self, org_id: str | None, variant: StatusVariant, text: str) -> None:
        if not org_id:
            return
        payload = json.dumps({"variant": variant.value, "text": text})
        await self.redis.publish(f"{TOAST_CHANNEL_PREFIX}{org_id}", payload)


class SmartNotifier:
    def __init__(self, toast: ToastNotifier | None = None, default_toast: bool = False):
        self.toast = toast or NoopToastNotifier()
        self.default_toast = default_toast
        self.message: SmartMessage | None = None

    async def notify(
        self,
        variant: StatusVariant,
        text: str,
        *,
        org_id: str | None = None,
        toast: bool | None = None,
    ) -> None:
        self.message = SmartMessage(variant=variant, text=text)

        should_toast = toast if toast is not None else self.default_toast
        if not should_toast:
            return

        try:
            await self.toast.show(org_id, variant, text)
        except Exception as e:
            logger.warning("Toast notification unavailable", org_id=org_id, error=str(e))

    def clear(self) -> None:
        self.message = None
