from __future__ import annotations

from typing import Protocol

from src.app.domain.events.change_event import ChangeEvent


class ChangeBroadcaster(Protocol):
    def fan_out(self, event: ChangeEvent) -> int:
        """Send a change event to every open client connection; return sends scheduled."""
