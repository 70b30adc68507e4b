"""Deliver derived notifications as system alerts or in-app sounds."""
from __future__ import annotations

import logging
from enum import StrEnum
from typing import Callable, Protocol

from ..config import Settings, get_settings
from ..constants import FALLBACK_BROADCAST_LABEL, FALLBACK_SENDER_LABEL
from ..schemas import Notification, NotificationType

logger = logging.getLogger(__name__)


class PermissionState(StrEnum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class AlertChannel(StrEnum):
    SYSTEM = "system"
    SOUND = "sound"


class NotificationPlatform(Protocol):
    """Operating-system notification capability."""

    @property
    def permission(self) -> PermissionState: ...

    async def request_permission(self) -> PermissionState: ...

    def show(self, title: str, *, body: str, icon: str | None = None) -> None: ...


class AudioPlatform(Protocol):
    def play(self, url: str) -> None: ...


class HeadlessNotificationPlatform:
    """Stand-in for environments without system notifications."""

    permission = PermissionState.DENIED

    async def request_permission(self) -> PermissionState:
        return PermissionState.DENIED

    def show(self, title: str, *, body: str, icon: str | None = None) -> None:
        logger.info("System notification suppressed: %s", title)


class SilentAudioPlatform:
    def play(self, url: str) -> None:
        logger.debug("Audio cue %s skipped (no audio output)", url)


def _always_visible() -> bool:
    return True


def alert_for(notification: Notification) -> tuple[str, str, str | None]:
    """Return the (title, body, icon) triple used to alert about ``notification``."""

    payload = notification.payload
    if notification.type == NotificationType.MESSAGE:
        sender = payload.get("sender")
        label = getattr(sender, "username", None) or FALLBACK_SENDER_LABEL
        return f"Message from {label}", str(payload.get("preview") or ""), payload.get("avatar")
    if notification.type == NotificationType.FRIEND_REQUEST:
        requester = payload.get("requester")
        label = getattr(requester, "username", None) or FALLBACK_SENDER_LABEL
        return "New Friend Request", f"{label} wants to be friends", payload.get("avatar")
    label = payload.get("sender_label") or FALLBACK_BROADCAST_LABEL
    return f"Announcement from {label}", str(payload.get("preview") or notification.content), None


class AlertDispatcher:
    """Pick the delivery channel for an alert and perform the side effect.

    A hidden application with granted permission gets a system notification;
    every other case gets the short in-app sound.
    """

    def __init__(
        self,
        notifications: NotificationPlatform | None = None,
        audio: AudioPlatform | None = None,
        *,
        is_visible: Callable[[], bool] = _always_visible,
        settings: Settings | None = None,
    ) -> None:
        self._notifications = notifications or HeadlessNotificationPlatform()
        self._audio = audio or SilentAudioPlatform()
        self._is_visible = is_visible
        self._settings = settings or get_settings()
        self._permission_requested = False

    @property
    def permission(self) -> PermissionState:
        try:
            return PermissionState(self._notifications.permission)
        except ValueError:
            return PermissionState.DEFAULT

    def dispatch(self, title: str, body: str, icon_url: str | None = None) -> AlertChannel:
        if not self._is_visible() and self.permission == PermissionState.GRANTED:
            try:
                self._notifications.show(title, body=body, icon=icon_url or self._settings.notification_icon_url)
                return AlertChannel.SYSTEM
            except Exception:
                logger.warning("System notification failed, falling back to sound", exc_info=True)
        self.play_sound(self._settings.alert_sound_url)
        return AlertChannel.SOUND

    def notify(self, notification: Notification) -> AlertChannel:
        title, body, icon = alert_for(notification)
        return self.dispatch(title, body, icon)

    def play_sound(self, url: str) -> bool:
        try:
            self._audio.play(url)
        except Exception:
            logger.warning("Audio cue %s could not be played", url, exc_info=True)
            return False
        return True

    def play_send_sound(self) -> bool:
        return self.play_sound(self._settings.send_sound_url)

    async def request_permission(self) -> PermissionState:
        """Ask for notification permission once; denial and errors are not failures."""

        current = self.permission
        if current != PermissionState.DEFAULT or self._permission_requested:
            return current
        self._permission_requested = True
        try:
            state = PermissionState(await self._notifications.request_permission())
        except Exception:
            logger.warning("Notification permission request failed", exc_info=True)
            return PermissionState.DENIED
        if state == PermissionState.GRANTED:
            self.dispatch("Notifications Enabled", "You will now receive alerts!")
        else:
            logger.info("Notification permission %s; alerts will use sound", state)
        return state


__all__ = [
    "PermissionState",
    "AlertChannel",
    "NotificationPlatform",
    "AudioPlatform",
    "HeadlessNotificationPlatform",
    "SilentAudioPlatform",
    "AlertDispatcher",
    "alert_for",
]
