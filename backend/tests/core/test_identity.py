"""Tests for the identity service client."""
import asyncio
import json

import httpx
import pytest
import respx
from httpx import Response

from core.identity import (
    NETWORK_ERROR_CODE,
    UNKNOWN_ERROR_CODE,
    AuthBackendError,
    IdentityClient,
    SessionUser,
    parse_identity_error,
)


def auth_response(uid: str = "alice-uid", email: str = "alice@example.com") -> Response:
    """Successful signUp/signInWithPassword response."""
    return Response(200, json={
        "localId": uid,
        "email": email,
        "idToken": "id-token",
        "refreshToken": "refresh-token",
    })


def error_response(message: str, status: int = 400) -> Response:
    """Error body in the identity service's format."""
    return Response(status, json={"error": {"code": status, "message": message}})


async def drain() -> None:
    """Let scheduled listener tasks run."""
    for _ in range(3):
        await asyncio.sleep(0)


# =============================================================================
# Error parsing
# =============================================================================


@pytest.mark.parametrize(("message", "code"), [
    ("EMAIL_EXISTS", "auth/email-already-in-use"),
    ("INVALID_PASSWORD", "auth/wrong-password"),
    ("EMAIL_NOT_FOUND", "auth/user-not-found"),
    ("INVALID_LOGIN_CREDENTIALS", "auth/invalid-credential"),
    ("TOO_MANY_ATTEMPTS_TRY_LATER", "auth/too-many-requests"),
])
def test__parse_identity_error__maps_known_messages(message: str, code: str) -> None:
    """Known service messages map to auth codes."""
    assert parse_identity_error(error_response(message)).code == code


def test__parse_identity_error__keeps_detail_after_colon() -> None:
    """Detail after the colon becomes the message."""
    error = parse_identity_error(
        error_response("WEAK_PASSWORD : Password should be at least 6 characters"),
    )

    assert error.code == "auth/weak-password"
    assert error.message == "Password should be at least 6 characters"


def test__parse_identity_error__unknown_message() -> None:
    """Unrecognized messages keep the raw text under the unknown code."""
    error = parse_identity_error(error_response("SOMETHING_NEW"))

    assert error.code == UNKNOWN_ERROR_CODE
    assert error.message == "SOMETHING_NEW"


def test__parse_identity_error__non_json_body() -> None:
    """A non-JSON error body falls back to the status code."""
    error = parse_identity_error(Response(502, text="Bad Gateway"))

    assert error.code == UNKNOWN_ERROR_CODE
    assert error.message == "HTTP 502"


# =============================================================================
# REST operations
# =============================================================================


async def test__sign_up__posts_credentials_and_sets_current_user(
    auth: IdentityClient,
    mock_identity: respx.MockRouter,
) -> None:
    """sign_up sends the API key and credentials and becomes the current session."""
    route = mock_identity.post("/accounts:signUp").mock(return_value=auth_response())

    user = await auth.sign_up("alice@example.com", "secret1")

    assert (user.uid, user.email) == ("alice-uid", "alice@example.com")
    assert auth.current_user() == user
    request = route.calls[0].request
    assert request.url.params["key"] == "test-api-key"
    assert json.loads(request.content) == {
        "email": "alice@example.com",
        "password": "secret1",
        "returnSecureToken": True,
    }


async def test__sign_in__sets_current_user(
    auth: IdentityClient,
    mock_identity: respx.MockRouter,
) -> None:
    """sign_in becomes the current session."""
    mock_identity.post("/accounts:signInWithPassword").mock(return_value=auth_response())

    user = await auth.sign_in("alice@example.com", "secret1")

    assert auth.current_user() == user
    assert user.id_token == "id-token"


async def test__sign_in__rejected_credentials_raise(
    auth: IdentityClient,
    mock_identity: respx.MockRouter,
) -> None:
    """Rejected credentials raise with the mapped code and leave no session."""
    mock_identity.post("/accounts:signInWithPassword").mock(
        return_value=error_response("INVALID_PASSWORD"),
    )

    with pytest.raises(AuthBackendError) as exc_info:
        await auth.sign_in("alice@example.com", "wrong")

    assert exc_info.value.code == "auth/wrong-password"
    assert auth.current_user() is None


async def test__post__transport_error_is_network_failure(
    auth: IdentityClient,
    mock_identity: respx.MockRouter,
) -> None:
    """Connection failures map to the network error code."""
    mock_identity.post("/accounts:signInWithPassword").mock(
        side_effect=httpx.ConnectError("connection refused"),
    )

    with pytest.raises(AuthBackendError) as exc_info:
        await auth.sign_in("alice@example.com", "secret1")

    assert exc_info.value.code == NETWORK_ERROR_CODE


async def test__sign_out__clears_current_user_without_server_call(
    auth: IdentityClient,
    alice: SessionUser,
    mock_identity: respx.MockRouter,
) -> None:
    """sign_out ends the session locally."""
    auth.restore_session(alice)

    await auth.sign_out()

    assert auth.current_user() is None
    assert len(mock_identity.calls) == 0


async def test__send_password_reset__requests_reset_email(
    auth: IdentityClient,
    mock_identity: respx.MockRouter,
) -> None:
    """The reset request names the email and request type."""
    route = mock_identity.post("/accounts:sendOobCode").mock(
        return_value=Response(200, json={"email": "alice@example.com"}),
    )

    await auth.send_password_reset("alice@example.com")

    assert json.loads(route.calls[0].request.content) == {
        "requestType": "PASSWORD_RESET",
        "email": "alice@example.com",
    }


async def test__fetch_sign_in_methods__registered_email(
    auth: IdentityClient,
    mock_identity: respx.MockRouter,
) -> None:
    """A registered email lists its sign-in methods."""
    mock_identity.post("/accounts:createAuthUri").mock(
        return_value=Response(200, json={"registered": True, "signinMethods": ["password"]}),
    )

    assert await auth.fetch_sign_in_methods("alice@example.com") == ["password"]


async def test__fetch_sign_in_methods__unused_email(
    auth: IdentityClient,
    mock_identity: respx.MockRouter,
) -> None:
    """An unused email has no methods."""
    mock_identity.post("/accounts:createAuthUri").mock(
        return_value=Response(200, json={"registered": False}),
    )

    assert await auth.fetch_sign_in_methods("new@example.com") == []


# =============================================================================
# Session observers
# =============================================================================


async def test__observe_session_changes__delivers_initial_state(
    auth: IdentityClient,
    alice: SessionUser,
) -> None:
    """A new observer is called with the current session."""
    auth.restore_session(alice)
    events = []

    auth.observe_session_changes(events.append)
    assert events == []  # delivered asynchronously
    await drain()

    assert events == [alice]


async def test__observe_session_changes__delivers_changes_until_unsubscribed(
    auth: IdentityClient,
    alice: SessionUser,
) -> None:
    """Observers see sign-in and sign-out until they unsubscribe."""
    events = []
    unsubscribe = auth.observe_session_changes(events.append)
    await drain()

    auth.restore_session(alice)
    await auth.sign_out()
    await drain()
    unsubscribe()
    auth.restore_session(alice)
    await drain()

    assert events == [None, alice, None]


async def test__observe_session_changes__async_listener_awaited(
    auth: IdentityClient,
    alice: SessionUser,
) -> None:
    """Coroutine listeners are awaited."""
    events = []

    async def listener(user: SessionUser | None) -> None:
        events.append(user)

    auth.restore_session(alice)
    auth.observe_session_changes(listener)
    await drain()

    assert events == [alice]


async def test__observe_session_changes__failing_listener_does_not_break_auth(
    auth: IdentityClient,
    alice: SessionUser,
) -> None:
    """An observer raising doesn't affect the session change or other observers."""
    events = []

    def broken(user: SessionUser | None) -> None:
        raise RuntimeError("observer bug")

    auth.observe_session_changes(broken)
    auth.observe_session_changes(events.append)
    auth.restore_session(alice)
    await drain()

    assert auth.current_user() == alice
    assert events == [None, alice]
