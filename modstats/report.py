"""
Report record, JSON encoding, and the ReportBuilder that snapshots a session.

A Report is immutable once built. Checkpoints carry ``crashed=True``: if one
is still on disk at the next start-up, the session never finished cleanly.
"""

import json
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from .config import log
from .constants import BUILD_VERSION, VERSION
from .host import GameVersion
from .state import utcnow

# Assembly names whose inspection failure was already logged this process.
_inspection_failures = set()
_inspection_lock = threading.Lock()


@dataclass(frozen=True)
class AssemblyDescriptor:
    dll_name: str
    name: str
    url: str
    version_major: int
    version_minor: int
    file_version: Optional[str] = None
    informational_version: Optional[str] = None

    def to_dict(self):
        return {
            "dllName": self.dll_name,
            "name": self.name,
            "url": self.url,
            "versionMajor": self.version_major,
            "versionMinor": self.version_minor,
            "fileVersion": self.file_version,
            "informationalVersion": self.informational_version,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            dll_name=data["dllName"],
            name=data["name"],
            url=data.get("url", ""),
            version_major=data.get("versionMajor", 0),
            version_minor=data.get("versionMinor", 0),
            file_version=data.get("fileVersion"),
            informational_version=data.get("informationalVersion"),
        )


@dataclass(frozen=True)
class Report:
    id: str
    started: datetime
    finished: datetime
    crashed: bool
    game_version: GameVersion
    # (scene, seconds) pairs sorted by scene name.
    scenes: Tuple[Tuple[str, float], ...] = ()
    assemblies: Tuple[AssemblyDescriptor, ...] = ()
    statistics_version: int = VERSION
    build_version: str = BUILD_VERSION

    @property
    def scene_seconds(self):
        return dict(self.scenes)

    def to_dict(self):
        return {
            "id": self.id,
            "started": self.started.isoformat(),
            "finished": self.finished.isoformat(),
            "crashed": self.crashed,
            "statisticsVersion": self.statistics_version,
            "buildVersion": self.build_version,
            "gameVersion": self.game_version.to_dict(),
            "scenes": {scene: seconds for scene, seconds in self.scenes},
            "assemblies": [a.to_dict() for a in self.assemblies],
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            started=datetime.fromisoformat(data["started"]),
            finished=datetime.fromisoformat(data["finished"]),
            crashed=bool(data["crashed"]),
            statistics_version=data.get("statisticsVersion", VERSION),
            build_version=data.get("buildVersion", BUILD_VERSION),
            game_version=GameVersion.from_dict(data["gameVersion"]),
            scenes=tuple(sorted((str(k), float(v)) for k, v in data.get("scenes", {}).items())),
            assemblies=tuple(AssemblyDescriptor.from_dict(a) for a in data.get("assemblies", [])),
        )

    def to_json(self):
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text):
        """Parse a JSON report. Raises ValueError on malformed input."""
        try:
            return cls.from_dict(json.loads(text))
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError("malformed report: %s" % e) from e


def scene_key(scene):
    return str(scene).lower()


def describe_assembly(assembly):
    """Build a descriptor; version introspection failures leave those fields None."""
    descriptor = dict(
        dll_name=assembly.dll_name,
        name=assembly.name,
        url=assembly.url,
        version_major=assembly.version_major,
        version_minor=assembly.version_minor,
    )
    for field_name, read in (
        ("file_version", assembly.file_version),
        ("informational_version", assembly.informational_version),
    ):
        try:
            descriptor[field_name] = read()
        except Exception as e:
            _log_inspection_failure(assembly.name, e)
    return AssemblyDescriptor(**descriptor)


def _log_inspection_failure(name, error):
    with _inspection_lock:
        if name in _inspection_failures:
            return
        _inspection_failures.add(name)
    log.warning("Could not inspect assembly %s: %s", name, error)


class ReportBuilder:
    """Turns SessionClock state plus host metadata into Reports."""

    def __init__(self, session_clock, host, clock=utcnow):
        self._session_clock = session_clock
        self._host = host
        self._clock = clock

    def build_checkpoint(self, now=None):
        return self._build(crashed=True, now=now)

    def build_final(self, now=None):
        return self._build(crashed=False, now=now)

    def companion_assemblies(self):
        assemblies = list(self._host.loaded_assemblies())
        return tuple(describe_assembly(a) for a in assemblies[1:])

    def _build(self, crashed, now):
        now = now or self._clock()
        self._session_clock.flush(now)
        state = self._session_clock.state
        durations = self._session_clock.elapsed_map_snapshot()

        return Report(
            id=state.id.hex,
            started=state.started_at,
            finished=now,
            crashed=crashed,
            game_version=self._host.game_version(),
            scenes=tuple(sorted(
                (scene_key(scene), elapsed.total_seconds())
                for scene, elapsed in durations.items()
            )),
            assemblies=self.companion_assemblies(),
        )
