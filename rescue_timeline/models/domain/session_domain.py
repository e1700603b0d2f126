# rescue_timeline/models/domain/session_domain.py
"""
Session context passed explicitly into services.

Holds what the client app keeps in its session store: the active organization,
the platform the request comes from, the device being synced and the caller's
access token (forwarded to Supabase so row-level security applies).
"""

from dataclasses import dataclass
from enum import StrEnum


class Platform(StrEnum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


@dataclass(frozen=True, slots=True)
class SessionContext:
    org_id: str | None
    platform: Platform = Platform.IOS
    device_id: str | None = None
    access_token: str | None = None

    def supports_local_notifications(self) -> bool:
        return self.platform != Platform.WEB
