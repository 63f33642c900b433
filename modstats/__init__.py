"""
modstats — anonymous gameplay statistics for a game plugin host
================================================================
Architecture: host-driven ticks on the main thread, worker threads for I/O.

  constants.py     → Versions, endpoints, intervals, timeouts
  config.py        → Paths, logging, settings.cfg load/save
  http_client.py   → HTTP session with retry/pooling + CA bundle
  host.py          → What the game host supplies (assemblies, scene, version)
  registry.py      → Version arbitration between bundled copies
  state.py         → SessionState dataclass (single source of truth)
  session_clock.py → SessionClock (time spent per scene)
  report.py        → Report record + ReportBuilder
  store.py         → ReportStore (checkpoint slot + upload queue on disk)
  uploader.py      → Uploader (ordered, stop-at-first-failure delivery)
  updater.py       → UpdateChecker (manifest + file downloads)
  app.py           → ModStatistics plugin lifecycle
"""

from .app import ModStatistics
from .constants import BUILD_VERSION, VERSION

__all__ = ["ModStatistics", "VERSION", "BUILD_VERSION"]
