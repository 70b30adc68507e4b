"""Entry point object handed to UI code.

``ChatSyncClient`` wires the Local Store, its snapshot cache, Session Manager,
Alert Dispatcher and Change Ingestion around one data store. UI code keeps a
reference to it, reads state through its properties and calls its action
methods; nothing is looked up globally.
"""
from __future__ import annotations

import logging
from types import TracebackType
from typing import Callable

from .config import Settings, get_settings
from .schemas import Message, Notification, User
from .services import friendship_service, message_service, profile_service
from .services.alerts import AlertDispatcher, AudioPlatform, NotificationPlatform
from .services.datastore import DataStore
from .services.identifiers import now_ms
from .services.ingestion import ChangeIngestion
from .services.local_store import LocalStore
from .services.persistence import JsonFileKeyValueStore, KeyValueStore
from .services.session_service import SessionManager, SessionState
from .services.snapshot_cache import SnapshotCache
from .services.sql_datastore import SqlDataStore

logger = logging.getLogger(__name__)


class ChatSyncClient:
    def __init__(
        self,
        datastore: DataStore | None = None,
        *,
        storage: KeyValueStore | None = None,
        notifications: NotificationPlatform | None = None,
        audio: AudioPlatform | None = None,
        is_visible: Callable[[], bool] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.datastore: DataStore = datastore or SqlDataStore(self.settings.database_url)
        self.storage: KeyValueStore = storage or JsonFileKeyValueStore(
            self.settings.storage_path, prefix=self.settings.storage_prefix
        )
        self.store = LocalStore()
        self.cache = SnapshotCache(self.store, self.storage, settings=self.settings)
        if is_visible is None:
            self.alerts = AlertDispatcher(notifications, audio, settings=self.settings)
        else:
            self.alerts = AlertDispatcher(notifications, audio, is_visible=is_visible, settings=self.settings)
        self.session = SessionManager(
            self.store, self.datastore, self.storage, self.alerts, settings=self.settings, cache=self.cache
        )
        self.ingestion = ChangeIngestion(self.store, self.session, self.alerts, self.datastore)

    # --- lifecycle ---
    async def start(self) -> SessionState:
        """Seed the Local Store from a snapshot, then follow the change streams.

        The streams are opened before the snapshot is fetched so writes that
        commit during the fetch are queued and replayed on top of it.
        """

        self.cache.attach()
        await self.ingestion.subscribe()
        state = await self.session.start()
        await self.ingestion.start()
        logger.debug("Client started in state %s", state)
        return state

    async def close(self) -> None:
        await self.ingestion.stop()
        await self.session.wait_for_background()
        await self.session.leave_presence()
        self.cache.flush()
        self.cache.detach()
        logger.debug("Client closed")

    async def __aenter__(self) -> ChatSyncClient:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # --- state ---
    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def current_user(self) -> User | None:
        return self.session.current_user

    @property
    def users(self) -> list[User]:
        return self.store.get_users()

    @property
    def messages(self) -> list[Message]:
        return self.store.get_messages()

    @property
    def notifications(self) -> list[Notification]:
        return self.store.get_notifications()

    @property
    def theme(self) -> str:
        return self.session.theme

    @property
    def online_users(self) -> list[str]:
        return self.store.get_online_users()

    def is_online(self, user_id: str) -> bool:
        return self.store.is_online(user_id)

    @property
    def typing_users(self) -> list[str]:
        """Users currently typing to the session user."""

        return self.store.typing_users(now_ms())

    def is_typing(self, peer_id: str) -> bool:
        return self.store.is_typing(peer_id, now_ms())

    def conversation(self, peer_id: str) -> list[Message]:
        user = self.session.require_user()
        return self.store.conversation(user.id, peer_id)

    def unread_count(self, peer_id: str) -> int:
        user = self.session.current_user
        return self.store.unread_count(peer_id, user.id) if user else 0

    # --- session ---
    async def login(self, user: User) -> User:
        return await self.session.login(user)

    async def signup(self, user: User) -> User:
        return await self.session.signup(user)

    def logout(self) -> None:
        self.session.logout()

    def toggle_theme(self) -> str:
        return self.session.toggle_theme()

    def mark_notification_read(self, notification_id: str) -> bool:
        return self.store.mark_notification_read(notification_id)

    # --- actions ---
    async def send_message(self, receiver_id: str, content: str) -> Message:
        return await message_service.send_message(self.session, receiver_id=receiver_id, content=content)

    async def broadcast_message(self, content: str) -> Message:
        return await message_service.broadcast_message(self.session, content=content)

    async def mark_conversation_as_read(self, peer_id: str) -> bool:
        return await message_service.mark_conversation_as_read(self.session, peer_id=peer_id)

    async def send_typing_signal(self, receiver_id: str) -> bool:
        return await message_service.send_typing_signal(self.session, receiver_id=receiver_id)

    async def send_friend_request(self, target_id: str) -> bool:
        return await friendship_service.send_friend_request(self.session, target_id=target_id)

    async def accept_friend_request(self, requester_id: str) -> User:
        return await friendship_service.accept_friend_request(self.session, requester_id=requester_id)

    async def unfriend(self, target_id: str) -> User:
        return await friendship_service.unfriend(self.session, target_id=target_id)

    async def update_profile(self, user: User) -> User:
        return await profile_service.update_profile(self.session, user)

    async def block_user(self, target_id: str) -> User:
        return await profile_service.block_user(self.session, target_id=target_id)

    async def unblock_user(self, target_id: str) -> User:
        return await profile_service.unblock_user(self.session, target_id=target_id)

    async def deactivate_account(self) -> None:
        await profile_service.deactivate_account(self.session)

    async def delete_account(self) -> None:
        await profile_service.delete_account(self.session)


__all__ = ["ChatSyncClient"]
