"""
Service layer for accounts, profiles, and the cached session snapshot.

The remote store is authoritative. Every write to the local session cache is
a separately logged side effect of a remote operation and never decides
whether that operation succeeded.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date

from core.config import get_settings
from core.identity import IdentityClient, SessionUser
from core.session_cache import SessionCache
from core.session_context import SessionContext
from db.document_store import SERVER_TIMESTAMP, DocumentStore
from schemas.reading_stats import ReadingStats
from schemas.user import (
    RegistrationRequest,
    SessionSnapshot,
    UserProfile,
    UserProfileUpdate,
    compose_full_name,
    format_join_date,
)
from services.exceptions import (
    BookTrackerError,
    NotFoundError,
    OperationTimeoutError,
    backend_errors,
)
from services.reading_stats_service import get_user_reading_stats
from services.utils import READING_STATS_COLLECTION, USERS_COLLECTION

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    """
    Outcome of a registration.

    profile_saved is False when the account exists but the profile and initial
    statistics could not be written in time; the user can still sign in.
    """

    user: SessionUser
    profile_saved: bool


def is_user_logged_in(auth: IdentityClient) -> bool:
    """Whether a remote session is active."""
    return auth.current_user() is not None


async def is_email_registered(auth: IdentityClient, email: str) -> bool:
    """Whether an account already uses this email."""
    with backend_errors("is_email_registered"):
        methods = await auth.fetch_sign_in_methods(email)
    return len(methods) > 0


async def get_current_user(auth: IdentityClient, store: DocumentStore) -> UserProfile | None:
    """
    Get the signed-in user's profile merged with their identity.

    Returns:
        The profile; identity only if no profile document exists; None when
        signed out or when the profile can't be loaded.
    """
    user = auth.current_user()
    if user is None:
        return None
    try:
        with backend_errors("get_current_user"):
            snapshot = await store.collection(USERS_COLLECTION).get(user.uid)
    except BookTrackerError as e:
        logger.error("get_current_user_failed uid=%s kind=%s", user.uid, e.kind)
        return None
    if not snapshot.exists:
        return UserProfile(uid=user.uid, email=user.email)
    return UserProfile.model_validate({**snapshot.data, "uid": user.uid, "email": user.email})


async def _save_initial_documents(
    store: DocumentStore,
    uid: str,
    request: RegistrationRequest,
    join_date: str,
    timeout: float,
) -> None:
    """
    Write the profile and zeroed statistics of a new account under one deadline.

    Raises:
        OperationTimeoutError: If both writes don't finish within `timeout` seconds.
        BookTrackerError: If the store rejects a write.
    """
    try:
        async with asyncio.timeout(timeout):
            with backend_errors("register_user_profile"):
                await store.collection(USERS_COLLECTION).set(uid, {
                    "firstName": request.first_name,
                    "lastName": request.last_name,
                    "fullName": request.full_name,
                    "email": request.email,
                    "joinDate": join_date,
                    "createdAt": SERVER_TIMESTAMP,
                })
                await store.collection(READING_STATS_COLLECTION).set(uid, {
                    **ReadingStats().counts(),
                    "lastUpdated": SERVER_TIMESTAMP,
                })
    except TimeoutError as e:
        raise OperationTimeoutError(
            f"Saving the profile took longer than {timeout:g} seconds.",
        ) from e


async def register_user(
    auth: IdentityClient,
    store: DocumentStore,
    cache: SessionCache,
    request: RegistrationRequest,
    timeout: float | None = None,
) -> RegistrationResult:
    """
    Create an account, its profile, and initial statistics.

    Account creation failures are raised. After the account exists, a failed or
    timed-out profile write only degrades the result (profile_saved=False),
    and the minimal session snapshot is cached either way.

    Args:
        auth: Identity client.
        store: Document store.
        cache: Session snapshot cache.
        request: Validated sign-up form.
        timeout: Deadline in seconds for the profile writes. Defaults to the
            REGISTRATION_TIMEOUT setting.
    """
    if timeout is None:
        timeout = get_settings().registration_timeout

    with backend_errors("register_user"):
        user = await auth.sign_up(request.email, request.password)

    join_date = format_join_date(date.today())
    profile_saved = True
    try:
        await _save_initial_documents(store, user.uid, request, join_date, timeout)
    except BookTrackerError as e:
        profile_saved = False
        logger.warning("register_user_profile_not_saved uid=%s kind=%s", user.uid, e.kind)

    snapshot = SessionSnapshot(
        uid=user.uid,
        email=request.email,
        full_name=request.full_name,
        join_date=join_date,
    )
    if not await cache.set(snapshot):
        logger.warning("register_user_snapshot_not_cached uid=%s", user.uid)

    logger.info("user_registered uid=%s profile_saved=%s", user.uid, profile_saved)
    return RegistrationResult(user=user, profile_saved=profile_saved)


async def login_user(
    auth: IdentityClient,
    store: DocumentStore,
    cache: SessionCache,
    email: str,
    password: str,
) -> SessionSnapshot:
    """
    Sign in, load profile and statistics, and cache the session snapshot.

    If the profile can't be loaded the remote session is ended again: a session
    without a cached snapshot is not usable.

    Raises:
        NotFoundError: If the account has no profile document.
        BookTrackerError: For rejected credentials or store failures.
    """
    with backend_errors("login_user"):
        user = await auth.sign_in(email, password)

    try:
        with backend_errors("login_user_profile"):
            profile_doc = await store.collection(USERS_COLLECTION).get(user.uid)
            if not profile_doc.exists:
                raise NotFoundError("No user data found for this account.")
            stats_doc = await store.collection(READING_STATS_COLLECTION).get(user.uid)
    except BookTrackerError:
        await auth.sign_out()
        raise

    profile = UserProfile.model_validate({**profile_doc.data, "uid": user.uid, "email": user.email})
    stats = ReadingStats.model_validate(stats_doc.data) if stats_doc.exists else ReadingStats()
    snapshot = SessionSnapshot(
        uid=user.uid,
        email=user.email,
        full_name=profile.display_name,
        join_date=profile.join_date,
        reading_stats=stats,
    )
    if not await cache.set(snapshot):
        logger.warning("login_user_snapshot_not_cached uid=%s", user.uid)
    logger.info("user_logged_in uid=%s", user.uid)
    return snapshot


async def logout_user(auth: IdentityClient, cache: SessionCache) -> None:
    """
    End the remote session and remove the cached snapshot.

    The snapshot is removed even if the remote sign-out fails; that failure is
    raised afterwards.
    """
    try:
        with backend_errors("logout_user"):
            await auth.sign_out()
    finally:
        if not await cache.clear():
            logger.warning("logout_user_snapshot_not_cleared")
    logger.info("user_logged_out")


async def send_password_reset(auth: IdentityClient, email: str) -> None:
    """Email a password reset link."""
    with backend_errors("send_password_reset"):
        await auth.send_password_reset(email)
    logger.info("password_reset_sent")


async def update_user_profile(
    store: DocumentStore,
    cache: SessionCache,
    ctx: SessionContext,
    updates: UserProfileUpdate,
) -> None:
    """
    Update the signed-in user's profile and mirror it into the cached snapshot.

    Changing first or last name recomposes the stored full name unless one is
    given explicitly.

    Raises:
        NotFoundError: If the user has no profile document.
    """
    user_id = ctx.require_user_id()
    fields = updates.model_dump(by_alias=True, exclude_unset=True)
    users = store.collection(USERS_COLLECTION)
    with backend_errors("update_user_profile"):
        if "fullName" not in fields and fields.keys() & {"firstName", "lastName"}:
            current = (await users.get(user_id)).data or {}
            fields["fullName"] = compose_full_name(
                fields.get("firstName", current.get("firstName")),
                fields.get("lastName", current.get("lastName")),
            )
        await users.update(user_id, {**fields, "updatedAt": SERVER_TIMESTAMP})
    logger.info("user_profile_updated uid=%s fields=%s", user_id, sorted(fields))

    if await cache.merge(fields) is None:
        logger.info("user_profile_snapshot_absent uid=%s", user_id)


async def load_profile_view(
    auth: IdentityClient,
    store: DocumentStore,
    cache: SessionCache,
) -> SessionSnapshot | None:
    """
    Data for the profile screen: the cached snapshot with live statistics.

    Falls back to identity-only data when nothing is cached and to zeroed
    statistics when they can't be loaded.

    Returns:
        The snapshot to display, or None when signed out with nothing cached.
    """
    user = auth.current_user()
    snapshot = await cache.get()
    if snapshot is None:
        if user is None:
            return None
        snapshot = SessionSnapshot(uid=user.uid, email=user.email)

    stats = ReadingStats()
    if user is not None:
        try:
            stats = await get_user_reading_stats(store, SessionContext.from_user(user))
        except BookTrackerError as e:
            logger.warning("profile_stats_unavailable uid=%s kind=%s", user.uid, e.kind)
    return snapshot.model_copy(update={"reading_stats": stats})
