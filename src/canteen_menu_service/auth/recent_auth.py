"""Tracks which identities have proven their password recently."""

import logging
import time
from collections.abc import Callable

from canteen_menu_service.exceptions import AuthenticationError
from canteen_menu_service.models.account_models import Principal

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 300.0


class RecentAuthTracker:
    """Remembers the last password check per uid.

    Sensitive account operations require a sign in or re-authentication
    within the window. A window of 0 disables the requirement.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._verified_at: dict[str, float] = {}

    def mark(self, uid: str) -> None:
        self._verified_at[uid] = self._clock()

    def forget(self, uid: str) -> None:
        self._verified_at.pop(uid, None)

    def is_recent(self, uid: str) -> bool:
        if self.window_seconds <= 0:
            return True
        verified_at = self._verified_at.get(uid)
        return verified_at is not None and self._clock() - verified_at <= self.window_seconds

    def require(self, principal: Principal) -> None:
        """Raise unless the principal proved their password within the window.

        Raises:
            AuthenticationError: With error code REAUTHENTICATION_REQUIRED
        """
        if not self.is_recent(principal.uid):
            logger.info(f"Re-authentication required for {principal.uid}")
            raise AuthenticationError(
                "Please confirm your password to continue",
                error_code="REAUTHENTICATION_REQUIRED",
            )
