"""
ReportStore — on-disk queue of reports waiting for upload.

Layout inside the plugin folder:

    checkpoint.json   snapshot of the running session (at most one)
    report-0.json     queued reports, one per file
    report-1.json
    ...

The folder is shared with other game sessions and other copies of the
plugin, so any file may vanish between listing and access. A missing file
is never an error.
"""

import os
import re
import tempfile
import threading
from dataclasses import replace
from pathlib import Path

from .config import log
from .report import Report

CHECKPOINT_NAME = "checkpoint.json"
SLOT_PREFIX = "report-"
SLOT_SUFFIX = ".json"

_SLOT_RE = re.compile(r"^report-(\d+)\.json$")


class ReportStore:
    def __init__(self, folder):
        self._folder = Path(folder)
        self._lock = threading.RLock()

    @property
    def folder(self):
        return self._folder

    @property
    def checkpoint_path(self):
        return self._folder / CHECKPOINT_NAME

    def slot_path(self, slot_id):
        return self._folder / (slot_id + SLOT_SUFFIX)

    # ─── Checkpoint slot ─────────────────────────────────────

    def enqueue_checkpoint(self, report):
        """Overwrite the checkpoint slot with a snapshot of the running session."""
        with self._lock:
            self._write_atomic(self.checkpoint_path, report.to_json())

    def clear_checkpoint(self):
        with self._lock:
            self.checkpoint_path.unlink(missing_ok=True)

    def commit_final(self, report):
        """Queue the checkpoint (if any) and the final report, then clear the slot.

        Returns the slot id of the final report.
        """
        with self._lock:
            self._migrate_checkpoint()
            slot_id = self._reserve_slot()
            self._write_atomic(self.slot_path(slot_id), report.to_json())
            self.clear_checkpoint()
        log.info("Saved report %s", slot_id)
        return slot_id

    def recover(self):
        """Move a checkpoint left by an unclean shutdown into the queue.

        Returns the new slot id, or None when there was nothing to recover.
        """
        with self._lock:
            slot_id = self._migrate_checkpoint()
        if slot_id is not None:
            log.warning("Recovered report %s from a session that did not shut down cleanly", slot_id)
        return slot_id

    def _migrate_checkpoint(self):
        try:
            data = self.checkpoint_path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            report = Report.from_json(data.decode("utf-8"))
        except ValueError as e:
            log.warning("Discarding unreadable checkpoint: %s", e)
            self.clear_checkpoint()
            return None

        slot_id = self._reserve_slot()
        if report.crashed:
            try:
                os.replace(self.checkpoint_path, self.slot_path(slot_id))
            except FileNotFoundError:
                # Another copy moved it first.
                self.slot_path(slot_id).unlink(missing_ok=True)
                return None
        else:
            self._write_atomic(self.slot_path(slot_id), replace(report, crashed=True).to_json())
            self.clear_checkpoint()
        return slot_id

    # ─── Queue ───────────────────────────────────────────────

    def _reserve_slot(self):
        """Claim the lowest free report-N.json by exclusive create."""
        self._folder.mkdir(parents=True, exist_ok=True)
        index = 0
        while True:
            slot_id = "%s%d" % (SLOT_PREFIX, index)
            try:
                fd = os.open(self.slot_path(slot_id), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                index += 1
                continue
            os.close(fd)
            return slot_id

    def list_pending(self):
        """Return [(slot_id, Report)] ordered by slot number."""
        slots = []
        try:
            names = os.listdir(self._folder)
        except FileNotFoundError:
            return []
        for name in names:
            match = _SLOT_RE.match(name)
            if match:
                slots.append((int(match.group(1)), name[: -len(SLOT_SUFFIX)]))
        slots.sort()

        pending = []
        for _, slot_id in slots:
            try:
                data = self.slot_path(slot_id).read_bytes()
            except FileNotFoundError:
                continue
            if not data.strip():
                # Reserved, not written yet.
                continue
            try:
                pending.append((slot_id, Report.from_json(data.decode("utf-8"))))
            except ValueError as e:
                log.warning("Skipping unreadable report %s: %s", slot_id, e)
        return pending

    def remove(self, slot_id):
        with self._lock:
            self.slot_path(slot_id).unlink(missing_ok=True)

    # ─── Helpers ─────────────────────────────────────────────

    def _write_atomic(self, path, text):
        self._folder.mkdir(parents=True, exist_ok=True)
        # Unique per writer: other processes share this folder.
        fd, tmp = tempfile.mkstemp(dir=self._folder, prefix=path.name + ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise
