"""
Announcement cooldown tracking.

Process-lifetime only: the map starts empty on every boot, so a restart
mid-stream relies on the activity store (see StreamMonitor priming) rather
than on persisted cooldown state.
"""

from __future__ import annotations

import time
from typing import Dict, Hashable, Optional

from shared.logging.logger import get_logger

log = get_logger("core.cooldown")


def now_ms() -> int:
    return int(time.time() * 1000)


class CooldownTracker:
    """
    Maps a streaming-channel identity to the last notification time (epoch ms).

    An absent entry is equivalent to "notified at epoch 0".
    """

    def __init__(self):
        self._last_notified: Dict[Hashable, int] = {}

    def last_notified(self, identity: Hashable) -> int:
        return self._last_notified.get(identity, 0)

    def should_notify(
        self,
        identity: Hashable,
        now: int,
        cooldown_ms: int,
        manual: bool = False,
    ) -> bool:
        if manual:
            return True
        return now - self.last_notified(identity) > cooldown_ms

    def next_eligible_at(self, identity: Hashable, cooldown_ms: int) -> Optional[int]:
        last = self._last_notified.get(identity)
        if last is None:
            return None
        return last + cooldown_ms

    def record_notified(self, identity: Hashable, now: int) -> None:
        """Call only after a notification was actually delivered."""
        self._last_notified[identity] = now

    def prime_without_notifying(self, identity: Hashable, now: int) -> None:
        self._last_notified[identity] = now
        log.debug(f"[cooldown] primed {identity} at {now}")

    def clear(self) -> None:
        self._last_notified.clear()

    def __len__(self) -> int:
        return len(self._last_notified)

    def __contains__(self, identity: Hashable) -> bool:
        return identity in self._last_notified
