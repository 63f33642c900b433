"""
SessionState — the running copy's record of the current play session.

Mutated only through SessionClock (scene transitions) and the plugin tick
(checkpoint scheduling).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional


def utcnow():
    return datetime.now(timezone.utc)


@dataclass
class SessionState:
    id: uuid.UUID
    started_at: datetime = field(default_factory=utcnow)

    # ── Scene tracking ────────────────────────────────────────
    current_scene: Optional[str] = None
    current_scene_entered_at: Optional[datetime] = None
    scene_durations: Dict[str, timedelta] = field(default_factory=dict)

    # ── Checkpointing ─────────────────────────────────────────
    next_checkpoint_at: Optional[datetime] = None
    finalized: bool = False

    def __post_init__(self):
        if self.current_scene_entered_at is None:
            self.current_scene_entered_at = self.started_at
        if self.next_checkpoint_at is None:
            self.next_checkpoint_at = self.started_at

    def checkpoint_due(self, now) -> bool:
        return not self.finalized and now >= self.next_checkpoint_at

    def schedule_next_checkpoint(self, now, interval_sec):
        self.next_checkpoint_at = now + timedelta(seconds=interval_sec)
