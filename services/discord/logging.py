"""
Discord command audit logging.

Normalizes Discord-originated events (command invocations, lifecycle) into
structured log lines on the discord runtime log file. Handlers call
log_command() once per invocation with the outcome.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from shared.logging.logger import get_logger

log = get_logger("discord.logging", runtime="discord")


class DiscordLogAdapter:
    def __init__(self):
        self._enabled: bool = True
        self._commands_logged = 0

    def enable(self):
        self._enabled = True

    def disable(self):
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def commands_logged(self) -> int:
        return self._commands_logged

    # --------------------------------------------------
    # Structured events
    # --------------------------------------------------

    def log_event(
        self,
        *,
        event: str,
        level: str = "info",
        guild_id: Optional[int] = None,
        user_id: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        if not self._enabled:
            return

        payload = {
            "event": event,
            "guild_id": guild_id,
            "user_id": user_id,
            "data": data or {},
        }

        if level == "debug":
            log.debug(f"Discord event: {payload}")
        elif level == "warning":
            log.warning(f"Discord event: {payload}")
        elif level == "error":
            log.error(f"Discord event: {payload}")
        else:
            log.info(f"Discord event: {payload}")

    def log_command(
        self,
        *,
        command: str,
        guild_id: Optional[int],
        user_id: Optional[int],
        success: bool,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self._commands_logged += 1
        self.log_event(
            event="discord_command",
            level="info" if success else "warning",
            data={
                "command": command,
                "success": success,
                "extra": extra or {},
            },
            guild_id=guild_id,
            user_id=user_id,
        )
