"""
SessionClock — accumulates time spent in each game scene.

The host is polled once per tick. A scene's in-progress interval only lands
in the duration map on the next transition or on ``flush()``, so callers
that report must flush first.
"""

import threading
from datetime import timedelta

from .config import log
from .state import utcnow


class SessionClock:
    def __init__(self, state, clock=utcnow):
        self._state = state
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def state(self):
        return self._state

    def on_scene_observed(self, scene, now=None):
        """Record a transition if ``scene`` differs from the last one seen.

        Returns True when a transition happened.
        """
        with self._lock:
            if self._state.current_scene == scene:
                return False
            self._advance(scene, now or self._clock())
            return True

    def flush(self, now=None):
        """Close the current interval without changing scene."""
        with self._lock:
            self._advance(self._state.current_scene, now or self._clock())

    def elapsed_map_snapshot(self):
        with self._lock:
            return dict(self._state.scene_durations)

    def _advance(self, scene, now):
        state = self._state
        last_scene = state.current_scene
        last_entered = state.current_scene_entered_at

        state.current_scene = scene
        state.current_scene_entered_at = now

        if last_scene is None:
            # Time before the first observation is not attributed to any scene.
            state.started_at = now
            return

        log.debug("Updating scene times (%s -> %s)", last_scene, scene)
        durations = state.scene_durations
        durations[last_scene] = durations.get(last_scene, timedelta(0)) + (now - last_entered)
