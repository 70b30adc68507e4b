"""Convenience exports for service layer."""
from .alerts import (
    AlertChannel,
    AlertDispatcher,
    AudioPlatform,
    HeadlessNotificationPlatform,
    NotificationPlatform,
    PermissionState,
    SilentAudioPlatform,
    alert_for,
)
from .change_feed import ChangeFeed, Subscription
from .datastore import REMOTE_FAILURES, DataStore, DataStoreError, InMemoryDataStore
from .friendship_service import accept_friend_request, send_friend_request, unfriend
from .identifiers import NotificationIdFactory, new_record_id, now_ms
from .ingestion import ChangeIngestion
from .local_store import LocalStore
from .mapper import message_from_record, message_to_record, user_from_record, user_to_record
from .message_service import broadcast_message, mark_conversation_as_read, send_message, send_typing_signal
from .notification_service import (
    BroadcastReceived,
    FriendRequestReceived,
    MessageReceived,
    derive_notification,
    pending_request_notifications,
)
from .persistence import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .profile_service import block_user, deactivate_account, delete_account, unblock_user, update_profile
from .session_service import SessionManager, SessionState
from .snapshot_cache import SnapshotCache
from .sql_datastore import SqlDataStore

__all__ = [
    "AlertChannel",
    "AlertDispatcher",
    "AudioPlatform",
    "HeadlessNotificationPlatform",
    "NotificationPlatform",
    "PermissionState",
    "SilentAudioPlatform",
    "alert_for",
    "ChangeFeed",
    "Subscription",
    "REMOTE_FAILURES",
    "DataStore",
    "DataStoreError",
    "InMemoryDataStore",
    "SqlDataStore",
    "accept_friend_request",
    "send_friend_request",
    "unfriend",
    "NotificationIdFactory",
    "new_record_id",
    "now_ms",
    "ChangeIngestion",
    "LocalStore",
    "message_from_record",
    "message_to_record",
    "user_from_record",
    "user_to_record",
    "broadcast_message",
    "mark_conversation_as_read",
    "send_message",
    "send_typing_signal",
    "BroadcastReceived",
    "FriendRequestReceived",
    "MessageReceived",
    "derive_notification",
    "pending_request_notifications",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "block_user",
    "deactivate_account",
    "delete_account",
    "unblock_user",
    "update_profile",
    "SessionManager",
    "SessionState",
    "SnapshotCache",
]
