"""Explicit session context passed into the data-access layer."""
from dataclasses import dataclass

from core.identity import SessionUser
from services.exceptions import UnauthenticatedError


@dataclass(frozen=True)
class SessionContext:
    """
    Identity a data-access call runs as.

    Resolved once by the caller (normally from the auth subsystem's current
    user) and passed explicitly, so a sign-out racing an in-flight call cannot
    change who that call acts for.
    """

    user_id: str | None = None

    @classmethod
    def from_user(cls, user: SessionUser | None) -> "SessionContext":
        """Build a context for a signed-in user, or an anonymous one."""
        return cls(user_id=user.uid if user is not None else None)

    @property
    def is_authenticated(self) -> bool:
        """Whether the context carries a user id."""
        return self.user_id is not None

    def require_user_id(self) -> str:
        """
        Return the user id.

        Raises:
            UnauthenticatedError: If no user is signed in.
        """
        if not self.is_authenticated:
            raise UnauthenticatedError()
        return self.user_id
