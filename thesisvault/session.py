"""
Local session snapshot.

The device keeps the signed-in user between launches as two keys in a
small JSON file: `user` (the profile dict) and `userRole`. A restored
snapshot is only trusted after the account is re-checked.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from thesisvault.errors import NotAuthenticatedError, UpstreamError

USER_KEY = "user"
ROLE_KEY = "userRole"


class SessionStore:
    """
    File-backed snapshot of the signed-in user.

    Usage:
        store = SessionStore(Path("./data/session.json"))
        await store.save(profile)
        ...
        profile = await store.restore(auth_gate)
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else Path("./data/session.json")
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def save(self, profile: Any) -> None:
        """
        Persist a profile.

        Args:
            profile: UserProfile or a profile dict with a `role` key
        """
        user = profile.to_dict() if hasattr(profile, "to_dict") else dict(profile)
        data = json.dumps({USER_KEY: user, ROLE_KEY: user.get("role")}, indent=2)

        await asyncio.to_thread(self.path.write_text, data)
        logger.debug(f"Saved session for user {user.get('user_id')}")

    async def load(self) -> Optional[dict]:
        """
        Read the snapshot back.

        Returns:
            Dict with `user` and `userRole`, or None when absent or unreadable
        """
        if not self.path.exists():
            return None

        try:
            raw = await asyncio.to_thread(self.path.read_text)
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load session snapshot: {e}")
            return None

        if not isinstance(data, dict) or not isinstance(data.get(USER_KEY), dict):
            return None

        return {USER_KEY: data[USER_KEY], ROLE_KEY: data.get(ROLE_KEY)}

    async def clear(self) -> None:
        if self.path.exists():
            await asyncio.to_thread(self.path.unlink)
            logger.debug("Cleared session snapshot")

    async def restore(self, auth_gate) -> Optional[Any]:
        """
        Re-validate the stored user and return a fresh profile.

        The snapshot is cleared when the account can no longer be found.
        An unreachable account store leaves it in place for the next try.

        Returns:
            UserProfile, or None when there is no valid session
        """
        snapshot = await self.load()
        if snapshot is None:
            return None

        try:
            profile = auth_gate.validate_session(snapshot[USER_KEY].get("user_id"))
        except NotAuthenticatedError as e:
            logger.info(f"Stored session rejected: {e.message}")
            await self.clear()
            return None
        except UpstreamError as e:
            logger.warning(f"Session check deferred: {e.detail}")
            return None

        await self.save(profile)
        return profile
