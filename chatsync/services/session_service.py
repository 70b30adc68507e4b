"""Session lifecycle: snapshot seeding, login, logout and signup."""
from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from functools import partial
from typing import Awaitable, Callable

from ..config import Settings, get_settings
from ..constants import CURRENT_USER_KEY, MESSAGES_TABLE, THEME_KEY, USERS_TABLE
from ..exceptions import NotAuthenticatedError, RemoteWriteError
from ..schemas import Message, User
from .alerts import AlertDispatcher
from .datastore import REMOTE_FAILURES, DataStore
from .identifiers import new_record_id, now_ms
from .local_store import LocalStore
from .mapper import message_from_record, user_from_record, user_to_record
from .notification_service import pending_request_notifications
from .persistence import KeyValueStore
from .snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)

THEMES = ("light", "dark")


class SessionState(StrEnum):
    LOADING = "loading"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class SessionManager:
    """Own the active user and the persisted pointer to it.

    Only the user id is held here; :attr:`current_user` always reads the
    latest snapshot from the Local Store, so event handlers never see a stale
    copy of the session user.
    """

    def __init__(
        self,
        store: LocalStore,
        datastore: DataStore,
        storage: KeyValueStore,
        alerts: AlertDispatcher,
        *,
        settings: Settings | None = None,
        cache: SnapshotCache | None = None,
    ) -> None:
        self.store = store
        self.datastore = datastore
        self.storage = storage
        self.alerts = alerts
        self.settings = settings or get_settings()
        self.cache = cache
        # Identifies this client in the presence set
        self.presence_key = new_record_id()
        self.state = SessionState.LOADING
        self._user_id: str | None = None
        self._background: set[asyncio.Task[None]] = set()

    # --- session reads ---
    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def current_user(self) -> User | None:
        return self.store.get_user(self._user_id)

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED and self.current_user is not None

    @property
    def is_admin(self) -> bool:
        user = self.current_user
        if user is None or not user.email:
            return False
        return user.email.strip().lower() in self.settings.admin_emails

    def require_user(self) -> User:
        user = self.current_user if self.state is SessionState.AUTHENTICATED else None
        if user is None:
            raise NotAuthenticatedError("Sign in required")
        return user

    # --- lifecycle ---
    async def start(self) -> SessionState:
        """Fetch the initial snapshot and restore a persisted session if possible.

        With a snapshot cache the cached users and messages are in the Local
        Store while the fetch runs. If the fetch fails they stay, and a
        persisted user found among them is restored.
        """

        self.state = SessionState.LOADING
        self._user_id = None
        saved_id = self.storage.get(CURRENT_USER_KEY)
        cached = False
        if self.cache is not None:
            cached_users, cached_messages = self.cache.load()
            if cached_users or cached_messages:
                self.store.load_snapshot(cached_users, self._latest(cached_messages))
                cached = True
                if self.store.get_user(saved_id) is not None:
                    self._user_id = saved_id

        try:
            user_rows = await self.datastore.fetch_all(USERS_TABLE)
            message_rows = await self.datastore.fetch_all(MESSAGES_TABLE)
        except Exception:
            if not cached:
                logger.exception("Initial snapshot fetch failed; continuing logged out")
                self.state = SessionState.ANONYMOUS
                return self.state
            logger.exception("Initial snapshot fetch failed; continuing from the cache")
        else:
            placeholder = self.settings.placeholder_avatar_url
            users = [user_from_record(row, placeholder_avatar=placeholder) for row in user_rows if row.get("id")]
            messages = [message_from_record(row) for row in message_rows if row.get("id")]
            self.store.load_snapshot(users, self._latest(messages))

        saved_user = self.store.get_user(saved_id)
        if saved_user is not None:
            self._authenticate(saved_user)
            await self.expire_premium()
        else:
            self._user_id = None
            if saved_id:
                logger.info("Persisted user %s no longer exists", saved_id)
                self.storage.delete(CURRENT_USER_KEY)
            self.state = SessionState.ANONYMOUS
        logger.info("Session started in state %s", self.state)
        return self.state

    def _latest(self, messages: list[Message]) -> list[Message]:
        limit = self.settings.initial_message_limit
        newest = sorted(messages, key=lambda message: message.timestamp, reverse=True)
        if limit > 0:
            newest = newest[:limit]
        return list(reversed(newest))

    async def login(self, user: User) -> User:
        """Make ``user`` the active session user."""

        if user.is_deactivated:
            try:
                await self.datastore.update(USERS_TABLE, user.id, {"is_deactivated": False})
            except REMOTE_FAILURES as exc:
                raise RemoteWriteError("reactivate_account", "Failed to reactivate account") from exc
            user = user.model_copy(update={"is_deactivated": False})
        self.store.upsert_user(user)
        self._authenticate(user)
        await self.expire_premium()
        return self.current_user or user

    async def signup(self, user: User) -> User:
        """Create ``user`` remotely, cache it, then log in as it."""

        self.store.upsert_user(user)
        try:
            await self.datastore.insert(USERS_TABLE, user_to_record(user))
        except REMOTE_FAILURES as exc:
            self.store.remove_user(user.id)
            logger.warning("Signup for %s failed", user.username)
            raise RemoteWriteError("signup", "Failed to create account", rolled_back=True) from exc
        return await self.login(user)

    def logout(self) -> None:
        was_signed_in = self._user_id is not None
        self.storage.delete(CURRENT_USER_KEY)
        self.store.clear_notifications()
        self.store.clear_typing()
        self._user_id = None
        self.state = SessionState.ANONYMOUS
        if was_signed_in:
            self._schedule(self.leave_presence)
        logger.info("Session logged out")

    def _authenticate(self, user: User) -> None:
        self._user_id = user.id
        self.storage.set(CURRENT_USER_KEY, user.id)
        self.state = SessionState.AUTHENTICATED
        for notification in reversed(
            pending_request_notifications(user, self.store.get_users(), self.store.get_notifications())
        ):
            self.store.prepend_notification(notification)
        self._schedule(self._request_permission)
        self._schedule(partial(self._track_presence, user.id))
        logger.info("Session authenticated as %s", user.id)

    async def expire_premium(self) -> bool:
        """Clear the session user's premium flag once its expiry has passed.

        Returns True when an expired subscription was cleared. A failed write
        is logged and retried on the next start or login.
        """

        user = self.current_user
        if user is None or not user.is_premium or user.premium_expiry is None:
            return False
        if now_ms() <= user.premium_expiry:
            return False
        changes = {"is_premium": False, "premium_expiry": None}
        try:
            await self.datastore.update(USERS_TABLE, user.id, changes)
        except REMOTE_FAILURES as exc:
            logger.warning("Could not clear expired premium for %s: %s", user.id, exc)
            return False
        latest = self.current_user or user
        self.store.upsert_user(latest.model_copy(update=changes))
        logger.info("Premium for %s expired", user.id)
        return True

    # --- background work ---
    def _schedule(self, job: Callable[[], Awaitable[None]]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(job())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _request_permission(self) -> None:
        try:
            await self.alerts.request_permission()
        except Exception:
            logger.exception("Permission request task failed")

    async def _track_presence(self, user_id: str) -> None:
        try:
            await self.datastore.track_presence(self.presence_key, user_id)
        except REMOTE_FAILURES as exc:
            logger.warning("Could not announce presence for %s: %s", user_id, exc)

    async def leave_presence(self) -> None:
        try:
            await self.datastore.untrack_presence(self.presence_key)
        except REMOTE_FAILURES as exc:
            logger.warning("Could not withdraw presence: %s", exc)

    async def wait_for_background(self) -> None:
        """Wait for scheduled background work such as the permission request."""

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # --- preferences ---
    @property
    def theme(self) -> str:
        stored = self.storage.get(THEME_KEY)
        return stored if stored in THEMES else "light"

    def toggle_theme(self) -> str:
        theme = "dark" if self.theme == "light" else "light"
        self.storage.set(THEME_KEY, theme)
        return theme


__all__ = ["SessionManager", "SessionState", "THEMES"]
