"""Pseudonymous identity for this installation."""

import logging
import secrets
import time

from .environment import Environment

logger = logging.getLogger(__name__)

USER_ID_KEY = "keepsake-user-id"


def generate_user_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"


class IdentityProvider:
    """Produces and persists a stable identifier used to scope ownership.

    The id is generated once, persisted indefinitely and never rotated.
    """

    def __init__(self, environment: Environment) -> None:
        self.environment = environment
        self._cached: str | None = None

    async def current_id(self) -> str:
        """Return the persisted id, creating and persisting one if needed."""
        if self._cached is not None:
            return self._cached

        stored = await self.environment.read_setting(USER_ID_KEY)
        if stored:
            self._cached = stored
            return stored

        user_id = generate_user_id()
        await self.environment.write_setting(USER_ID_KEY, user_id)
        logger.debug("Generated new user id %s", user_id)
        self._cached = user_id
        return user_id
