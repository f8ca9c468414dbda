"""
Decide the starting screen on application launch.

Waits for the first session event from the auth subsystem and reconciles it
with the local session cache:

    UNRESOLVED ──no session──────────────────────────────► UNAUTHENTICATED (welcome)
        │
        └──session──► snapshot cached for this user? ──yes──► AUTHENTICATED_COMPLETE (dashboard)
                                        │
                                        no
                                        ▼
                     AUTHENTICATED_INCOMPLETE ──sign out──► UNAUTHENTICATED (welcome)

Later session events are ignored; screen-level flows handle them.
"""
import asyncio
import logging
from enum import StrEnum

from core.identity import IdentityClient, SessionUser
from core.session_cache import SessionCache

logger = logging.getLogger(__name__)


class BootstrapState(StrEnum):
    """Where the bootstrap is in deciding the initial route."""

    UNRESOLVED = "unresolved"
    AUTHENTICATED_COMPLETE = "authenticated-complete"
    AUTHENTICATED_INCOMPLETE = "authenticated-incomplete"
    UNAUTHENTICATED = "unauthenticated"


class StartScreen(StrEnum):
    """Screens the app can start on."""

    WELCOME = "welcome"
    DASHBOARD = "dashboard"


TERMINAL_STATES = frozenset({BootstrapState.AUTHENTICATED_COMPLETE, BootstrapState.UNAUTHENTICATED})


class SessionBootstrap:
    """
    One-shot resolver of the initial screen.

    Usage:
        bootstrap = SessionBootstrap(auth, cache)
        screen = await bootstrap.resolve()
    """

    def __init__(self, auth: IdentityClient, cache: SessionCache) -> None:
        self._auth = auth
        self._cache = cache
        self.state = BootstrapState.UNRESOLVED
        self._first_event: asyncio.Future[SessionUser | None] | None = None
        # Concurrent resolve() calls wait for the first one to decide
        self._lock = asyncio.Lock()

    @property
    def start_screen(self) -> StartScreen | None:
        """The decided screen, or None while unresolved."""
        if self.state == BootstrapState.AUTHENTICATED_COMPLETE:
            return StartScreen.DASHBOARD
        if self.state == BootstrapState.UNAUTHENTICATED:
            return StartScreen.WELCOME
        return None

    def _on_session_event(self, user: SessionUser | None) -> None:
        # Only the first event decides routing
        if self._first_event is not None and not self._first_event.done():
            self._first_event.set_result(user)

    async def resolve(self) -> StartScreen:
        """
        Wait for the first session event and decide the starting screen.

        Calling again after a decision, or while another call is deciding,
        returns the same screen.
        """
        async with self._lock:
            if self.state in TERMINAL_STATES:
                return self.start_screen

            self._first_event = asyncio.get_running_loop().create_future()
            unsubscribe = self._auth.observe_session_changes(self._on_session_event)
            try:
                user = await self._first_event
            finally:
                unsubscribe()

            try:
                await self._reconcile(user)
            except Exception:
                logger.exception("session_bootstrap_failed")
                self.state = BootstrapState.UNAUTHENTICATED

        logger.info("session_bootstrap_resolved state=%s screen=%s", self.state, self.start_screen)
        return self.start_screen

    async def _reconcile(self, user: SessionUser | None) -> None:
        """Move from UNRESOLVED to a terminal state for the given session."""
        if user is None:
            self.state = BootstrapState.UNAUTHENTICATED
            return

        snapshot = await self._cache.get()
        if snapshot is not None and snapshot.uid == user.uid:
            self.state = BootstrapState.AUTHENTICATED_COMPLETE
            return
        if snapshot is not None:
            logger.warning("session_snapshot_uid_mismatch uid=%s cached_uid=%s", user.uid, snapshot.uid)

        # A remote session without local data is unusable: treat as logged out
        self.state = BootstrapState.AUTHENTICATED_INCOMPLETE
        logger.warning("session_without_snapshot uid=%s", user.uid)
        await self._auth.sign_out()
        self.state = BootstrapState.UNAUTHENTICATED
