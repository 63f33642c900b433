"""
ModStatistics — the plugin object the game host drives.

The host calls, on its main thread:
  start()         — once, at game start-up
  fixed_update()  — every physics tick
  on_destroy()    — once, when the game shuts down

Uploads and downloads run on short-lived worker threads. Their results are
handed back through a queue and applied on the next tick, so the session
state is only ever touched from the host's thread.
"""

import queue
import uuid

from .config import Configuration, PluginPaths, log, load_config, save_config, setup_logging
from .constants import CHECKPOINT_INTERVAL_SEC, VERSION
from .registry import VersionRegistry
from .report import ReportBuilder
from .session_clock import SessionClock
from .state import SessionState, utcnow
from .store import ReportStore
from .updater import UpdateChecker
from .uploader import Uploader


class ModStatistics:
    """One bundled copy of the plugin. Only the highest-versioned copy runs."""

    version = VERSION
    # Read by other copies during arbitration; set to sys.maxsize by the winner.
    _version = VERSION

    def __init__(self, host, paths=None, uploader=None, updater=None, modules=None, clock=utcnow):
        self._host = host
        self._paths = paths or PluginPaths.for_root(host.root_path)
        self._uploader = uploader or Uploader()
        self._updater = updater or UpdateChecker(self._paths.folder)
        self._modules = modules
        self._clock = clock
        self._completions = queue.Queue()

        self.running = False
        self.config = None
        self.state = None
        self.store = ReportStore(self._paths.folder)
        self._session_clock = None
        self._builder = None

    @property
    def paths(self):
        return self._paths

    @property
    def update_decision_pending(self):
        return self.config is not None and self.config.update is None

    # ─── Start-up ────────────────────────────────────────────

    def start(self):
        """Arbitrate, load settings, recover, and begin the session.

        Returns True if this copy is now the running one.
        """
        result = VersionRegistry(type(self), self._modules).arbitrate(type(self).version)
        if not result.is_self:
            log.info("Version %d yields to version %d", type(self).version, result.winning_version)
            return False

        try:
            return self._start_session()
        except Exception as e:
            log.error("Start-up failed: %s", e, exc_info=True)
            self.running = False
            return False

    def _start_session(self):
        self._paths.folder.mkdir(parents=True, exist_ok=True)
        setup_logging(self._paths.log_file)
        log.info("Running version %d", type(self).version)

        config = self._load_or_create_config()
        if config is None:
            return False
        self.config = config

        now = self._clock()
        self.state = SessionState(id=config.id, started_at=now)
        self._session_clock = SessionClock(self.state, self._clock)
        self._builder = ReportBuilder(self._session_clock, self._host, self._clock)
        self.state.schedule_next_checkpoint(now, CHECKPOINT_INTERVAL_SEC)

        try:
            self.store.recover()
        except OSError as e:
            log.warning("Checkpoint recovery failed: %s", e)

        self.running = True
        self._flush_async()

        if config.update is None:
            log.info("Update preference not set yet")
        elif config.update:
            self._updater.check_async(self._completions.put)
        return True

    def _load_or_create_config(self):
        path = self._paths.config_file
        config = load_config(path)
        if config is None:
            log.info("Creating new configuration file")
            config = Configuration(id=uuid.uuid4())
            self._save_config(config)
            return config

        if config.disabled:
            log.info("Disabled in configuration file")
            return None

        if config.id is None:
            config.id = uuid.uuid4()
            self._save_config(config)
        return config

    def _save_config(self, config):
        try:
            save_config(self._paths.config_file, config)
        except OSError as e:
            log.warning("Could not write configuration: %s", e)

    def set_update_preference(self, enabled):
        """Persist the player's answer to the self-update prompt."""
        if self.config is None:
            return
        self.config.update = bool(enabled)
        self._save_config(self.config)
        if self.running and self.config.update:
            self._updater.check_async(self._completions.put)

    # ─── Tick ────────────────────────────────────────────────

    def fixed_update(self):
        if not self.running:
            return
        try:
            self._do_tick()
        except Exception as e:
            log.error("fixed_update error: %s", e, exc_info=True)

    def _do_tick(self):
        self._drain_completions()
        now = self._clock()
        self._session_clock.on_scene_observed(self._host.current_scene(), now)

        if self.state.checkpoint_due(now):
            self.write_checkpoint(now)

    def write_checkpoint(self, now=None):
        now = now or self._clock()
        try:
            self.store.enqueue_checkpoint(self._builder.build_checkpoint(now))
        except OSError as e:
            log.warning("Could not write checkpoint: %s", e)
        self.state.schedule_next_checkpoint(now, CHECKPOINT_INTERVAL_SEC)

    def _drain_completions(self):
        while True:
            try:
                result = self._completions.get_nowait()
            except queue.Empty:
                return
            self._on_completion(result)

    def _on_completion(self, result):
        if isinstance(result, tuple):
            sent, remaining = result
            if remaining:
                log.info("%d reports left for the next flush", remaining)
        elif not result.ok:
            log.warning("Update of %s did not complete", result.entry.path)

    # ─── Shutdown ────────────────────────────────────────────

    def on_destroy(self):
        if not self.running:
            return
        self.running = False
        try:
            now = self._clock()
            self._session_clock.on_scene_observed(self._host.current_scene(), now)
            report = self._builder.build_final(now)
            self.state.finalized = True
            log.info("Saving report")
            self.store.commit_final(report)
        except Exception as e:
            log.error("Could not save final report: %s", e, exc_info=True)
        self._flush_async()

    def _flush_async(self):
        self._uploader.flush_async(self.store, self._completions.put)
