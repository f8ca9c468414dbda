"""
Email/password authentication against an Identity Toolkit style REST API.

Holds the process-wide session state (who is signed in) and notifies
observers when it changes.
"""
import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Identity Toolkit error messages mapped to client-style auth codes
IDENTITY_ERROR_CODES: dict[str, str] = {
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "WEAK_PASSWORD": "auth/weak-password",
    "MISSING_PASSWORD": "auth/weak-password",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "USER_DISABLED": "auth/user-disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "PERMISSION_DENIED": "auth/permission-denied",
}

NETWORK_ERROR_CODE = "auth/network-request-failed"
UNKNOWN_ERROR_CODE = "auth/unknown"


class AuthBackendError(Exception):
    """Failure reported by the identity service, carrying an auth/... code."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


@dataclass(frozen=True)
class SessionUser:
    """The signed-in identity."""

    uid: str
    email: str | None = None
    id_token: str = field(default="", repr=False)
    refresh_token: str = field(default="", repr=False)


SessionListener = Callable[[SessionUser | None], Awaitable[None] | None]


def parse_identity_error(response: httpx.Response) -> AuthBackendError:
    """
    Build an AuthBackendError from an error response.

    The service reports {"error": {"message": "EMAIL_EXISTS"}}; some messages
    carry detail after a colon ("WEAK_PASSWORD : Password should be ...").
    """
    try:
        raw = response.json().get("error", {}).get("message", "")
    except ValueError:
        raw = ""
    key, _, detail = raw.partition(":")
    key = key.strip()
    code = IDENTITY_ERROR_CODES.get(key, UNKNOWN_ERROR_CODE)
    message = detail.strip() or raw or f"HTTP {response.status_code}"
    return AuthBackendError(code, message)


class IdentityClient:
    """
    Authentication subsystem.

    sign_up/sign_in call the REST API and, on success, become the current
    session; sign_out ends it locally. Observers registered with
    observe_session_changes() are called asynchronously: once with the state
    at subscription time, then on every change.

    Args:
        http_client: Shared HTTP client.
        api_key: Project API key sent as the `key` query parameter.
        base_url: API root, e.g. https://identitytoolkit.googleapis.com/v1.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._current_user: SessionUser | None = None
        self._listeners: list[SessionListener] = []
        self._pending: set[asyncio.Task] = set()

    # --- Session state ---

    def current_user(self) -> SessionUser | None:
        """The signed-in user, or None."""
        return self._current_user

    def observe_session_changes(self, listener: SessionListener) -> Callable[[], None]:
        """
        Subscribe to session changes.

        Must be called from a running event loop. Returns a function that
        removes the subscription.
        """
        self._listeners.append(listener)
        self._schedule(listener, self._current_user)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def restore_session(self, user: SessionUser) -> None:
        """Adopt a session persisted from a previous run."""
        self._set_current_user(user)

    def _set_current_user(self, user: SessionUser | None) -> None:
        self._current_user = user
        for listener in list(self._listeners):
            self._schedule(listener, user)

    def _schedule(self, listener: SessionListener, user: SessionUser | None) -> None:
        task = asyncio.get_running_loop().create_task(self._invoke(listener, user))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _invoke(self, listener: SessionListener, user: SessionUser | None) -> None:
        # Observer failures must not break the auth flow that triggered them
        try:
            result = listener(user)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("session_listener_failed")

    # --- REST operations ---

    async def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to accounts:{method}, raising AuthBackendError on failure."""
        try:
            response = await self._http.post(
                f"{self._base_url}/accounts:{method}",
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.TransportError as e:
            logger.warning("identity_request_failed method=%s error=%s", method, e)
            raise AuthBackendError(NETWORK_ERROR_CODE, str(e)) from e
        if response.is_error:
            error = parse_identity_error(response)
            logger.info("identity_rejected method=%s code=%s", method, error.code)
            raise error
        return response.json()

    @staticmethod
    def _user_from_response(data: dict[str, Any]) -> SessionUser:
        return SessionUser(
            uid=data["localId"],
            email=data.get("email"),
            id_token=data.get("idToken", ""),
            refresh_token=data.get("refreshToken", ""),
        )

    async def sign_up(self, email: str, password: str) -> SessionUser:
        """Create an account and sign it in."""
        data = await self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        user = self._user_from_response(data)
        logger.info("identity_sign_up uid=%s", user.uid)
        self._set_current_user(user)
        return user

    async def sign_in(self, email: str, password: str) -> SessionUser:
        """Sign in with email and password."""
        data = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        user = self._user_from_response(data)
        logger.info("identity_sign_in uid=%s", user.uid)
        self._set_current_user(user)
        return user

    async def sign_out(self) -> None:
        """End the current session. Tokens are dropped; there is no server call."""
        if self._current_user is not None:
            logger.info("identity_sign_out uid=%s", self._current_user.uid)
        self._set_current_user(None)

    async def send_password_reset(self, email: str) -> None:
        """Ask the service to email a password reset link."""
        await self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def fetch_sign_in_methods(self, email: str) -> list[str]:
        """Sign-in methods registered for an email; empty when the email is unused."""
        data = await self._post(
            "createAuthUri",
            {"identifier": email, "continueUri": "http://localhost"},
        )
        if not data.get("registered"):
            return []
        return list(data.get("signinMethods", []))
