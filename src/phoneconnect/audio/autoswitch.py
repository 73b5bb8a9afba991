"""Suspension of WirePlumber's Bluetooth autoswitch policy.

WirePlumber's ``bluetooth.autoswitch-to-headset-profile`` setting races a
manual profile switch: as soon as a card is moved to a headset profile,
WirePlumber sees no capture stream attached and reverts it to A2DP before
the loopback bridges can attach.  The guard turns the setting off for the
duration of a call and puts it back afterwards.
"""

import asyncio
import logging
import re

logger = logging.getLogger(__name__)

AUTOSWITCH_SETTING = "bluetooth.autoswitch-to-headset-profile"

_BOOL_RE = re.compile(r"\b(true|false)\b", re.IGNORECASE)


class WirePlumberSettings:
    """Reads and writes WirePlumber settings through ``wpctl settings``."""

    async def _wpctl(self, *args: str) -> tuple[int | None, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                "wpctl", "settings", *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except (FileNotFoundError, OSError) as exc:
            logger.debug("wpctl not available: %s", exc)
            return None, ""
        if proc.returncode != 0:
            logger.debug(
                "wpctl settings %s failed: %s",
                " ".join(args), stderr.decode(errors="replace").strip(),
            )
        return proc.returncode, stdout.decode(errors="replace")

    async def get_bool(self, key: str) -> bool | None:
        """Current value of a boolean setting, or None if it cannot be read."""
        returncode, stdout = await self._wpctl(key)
        if returncode != 0:
            return None
        match = _BOOL_RE.search(stdout)
        if not match:
            return None
        return match.group(1).lower() == "true"

    async def set_bool(self, key: str, value: bool) -> bool:
        """Set a boolean setting.  True on success."""
        returncode, _ = await self._wpctl(key, "true" if value else "false")
        return returncode == 0


class AutoswitchPolicyGuard:
    """Turns the autoswitch policy off around a call and restores it after.

    Both operations are best-effort and idempotent: failures are logged,
    and resume() without a matching suspend() does nothing.
    """

    def __init__(self, settings: WirePlumberSettings, key: str = AUTOSWITCH_SETTING):
        self._settings = settings
        self._key = key
        self._saved: bool | None = None
        self._suspended = False

    @property
    def suspended(self) -> bool:
        return self._suspended

    async def suspend(self) -> None:
        """Disable the autoswitch policy, remembering its previous value."""
        if self._suspended:
            return
        try:
            previous = await self._settings.get_bool(self._key)
            # Unknown value: assume the WirePlumber default (enabled).
            self._saved = True if previous is None else previous
            if not await self._settings.set_bool(self._key, False):
                logger.warning(
                    "Could not disable %s; the profile switch may be reverted",
                    self._key,
                )
        except Exception as e:
            logger.warning("Could not disable %s: %s", self._key, e)
        self._suspended = True
        logger.debug("Autoswitch policy suspended (was %s)", self._saved)

    async def resume(self) -> None:
        """Restore the autoswitch policy to the value seen by suspend()."""
        if not self._suspended:
            return
        self._suspended = False
        restore = True if self._saved is None else self._saved
        try:
            if not await self._settings.set_bool(self._key, restore):
                logger.warning("Could not restore %s to %s", self._key, restore)
        except Exception as e:
            logger.warning("Could not restore %s: %s", self._key, e)
        logger.debug("Autoswitch policy resumed (%s)", restore)
