"""Tests for alert channel selection and permission handling."""
from __future__ import annotations

import asyncio

import pytest
from support import RecordingAudio, RecordingNotifications, Visibility

from chatsync.config import Settings
from chatsync.schemas import Notification, NotificationType, User
from chatsync.services.alerts import AlertChannel, AlertDispatcher, PermissionState, alert_for


class BrokenNotifications(RecordingNotifications):
    def show(self, title: str, *, body: str, icon: str | None = None) -> None:
        raise OSError("notification daemon gone")

    async def request_permission(self) -> PermissionState:
        raise OSError("prompt unavailable")


class BrokenAudio:
    def play(self, url: str) -> None:
        raise RuntimeError("autoplay blocked")


@pytest.fixture
def visibility() -> Visibility:
    return Visibility()


@pytest.fixture
def dispatcher(
    notifications: RecordingNotifications, audio: RecordingAudio, visibility: Visibility, settings: Settings
) -> AlertDispatcher:
    return AlertDispatcher(notifications, audio, is_visible=visibility, settings=settings)


def _message_notification() -> Notification:
    return Notification(
        id="n1",
        type=NotificationType.MESSAGE,
        content="New message from sarah",
        timestamp=1,
        payload={"sender": User(id="u2", username="sarah"), "preview": "hey", "avatar": "https://cdn/a.png"},
    )


def test_visible_app_plays_sound(
    dispatcher: AlertDispatcher, notifications: RecordingNotifications, audio: RecordingAudio, settings: Settings
) -> None:
    assert dispatcher.dispatch("title", "body") is AlertChannel.SOUND
    assert notifications.shown == []
    assert audio.played == [settings.alert_sound_url]


def test_hidden_app_with_permission_shows_system_notification(
    dispatcher: AlertDispatcher,
    notifications: RecordingNotifications,
    audio: RecordingAudio,
    visibility: Visibility,
    settings: Settings,
) -> None:
    visibility.visible = False

    assert dispatcher.dispatch("title", "body") is AlertChannel.SYSTEM
    assert notifications.shown == [("title", "body", settings.notification_icon_url)]
    assert audio.played == []


def test_hidden_app_without_permission_falls_back_to_sound(
    dispatcher: AlertDispatcher, notifications: RecordingNotifications, audio: RecordingAudio, visibility: Visibility
) -> None:
    visibility.visible = False
    notifications.permission = PermissionState.DENIED

    assert dispatcher.dispatch("title", "body") is AlertChannel.SOUND
    assert notifications.shown == []
    assert len(audio.played) == 1


def test_system_notification_failure_falls_back_to_sound(audio: RecordingAudio, settings: Settings) -> None:
    dispatcher = AlertDispatcher(BrokenNotifications(), audio, is_visible=Visibility(False), settings=settings)

    assert dispatcher.dispatch("title", "body") is AlertChannel.SOUND
    assert audio.played == [settings.alert_sound_url]


def test_audio_failure_is_swallowed(notifications: RecordingNotifications, settings: Settings) -> None:
    dispatcher = AlertDispatcher(notifications, BrokenAudio(), settings=settings)

    assert dispatcher.play_sound("/sounds/notify.mp3") is False
    assert dispatcher.dispatch("title", "body") is AlertChannel.SOUND


def test_notify_uses_message_title_and_icon(
    dispatcher: AlertDispatcher, notifications: RecordingNotifications, visibility: Visibility
) -> None:
    visibility.visible = False

    dispatcher.notify(_message_notification())

    assert notifications.shown == [("Message from sarah", "hey", "https://cdn/a.png")]


def test_alert_text_for_friend_request_and_broadcast() -> None:
    request = Notification(
        id="n2",
        type=NotificationType.FRIEND_REQUEST,
        content="sarah sent you a friend request",
        timestamp=1,
        payload={"requester": User(id="u2", username="sarah"), "avatar": None},
    )
    broadcast = Notification(
        id="n3",
        type=NotificationType.SYSTEM,
        content="📢 root: maintenance",
        timestamp=1,
        payload={"sender_label": "root", "preview": "maintenance"},
    )

    assert alert_for(request) == ("New Friend Request", "sarah wants to be friends", None)
    assert alert_for(broadcast) == ("Announcement from root", "maintenance", None)


def test_send_sound_uses_configured_url(dispatcher: AlertDispatcher, audio: RecordingAudio, settings: Settings) -> None:
    dispatcher.play_send_sound()

    assert audio.played == [settings.send_sound_url]


def test_permission_is_requested_once_and_confirmed(
    dispatcher: AlertDispatcher, notifications: RecordingNotifications, audio: RecordingAudio
) -> None:
    notifications.permission = PermissionState.DEFAULT

    async def scenario() -> tuple[PermissionState, PermissionState]:
        first = await dispatcher.request_permission()
        second = await dispatcher.request_permission()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is PermissionState.GRANTED
    assert second is PermissionState.GRANTED
    assert notifications.requests == 1
    # Visible app, so the confirmation arrives as a sound.
    assert len(audio.played) == 1


def test_denied_permission_is_not_an_error(
    dispatcher: AlertDispatcher, notifications: RecordingNotifications, audio: RecordingAudio
) -> None:
    notifications.permission = PermissionState.DEFAULT
    notifications.answer = PermissionState.DENIED

    assert asyncio.run(dispatcher.request_permission()) is PermissionState.DENIED
    assert audio.played == []


def test_permission_request_error_counts_as_denied(audio: RecordingAudio, settings: Settings) -> None:
    platform = BrokenNotifications(permission=PermissionState.DEFAULT)
    dispatcher = AlertDispatcher(platform, audio, settings=settings)

    assert asyncio.run(dispatcher.request_permission()) is PermissionState.DENIED


def test_already_decided_permission_is_not_requested(
    dispatcher: AlertDispatcher, notifications: RecordingNotifications
) -> None:
    assert asyncio.run(dispatcher.request_permission()) is PermissionState.GRANTED
    assert notifications.requests == 0
