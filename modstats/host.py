"""
The services the game's plugin host supplies.

The host owns the lifecycle (it calls ``ModStatistics.start``,
``fixed_update`` and ``on_destroy``) and exposes what it knows about the
running game through a ``Host`` object.
"""

import importlib.metadata
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Optional, Sequence


@dataclass(frozen=True)
class GameVersion:
    major: int
    minor: int
    revision: int
    experimental: int = 0
    build: int = 0
    is_beta: bool = False
    is_steam: bool = False

    def to_dict(self):
        return {
            "major": self.major,
            "minor": self.minor,
            "revision": self.revision,
            "experimental": self.experimental,
            "build": self.build,
            "isBeta": self.is_beta,
            "isSteam": self.is_steam,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            major=data["major"],
            minor=data["minor"],
            revision=data["revision"],
            experimental=data.get("experimental", 0),
            build=data.get("build", 0),
            is_beta=data.get("isBeta", False),
            is_steam=data.get("isSteam", False),
        )


@dataclass
class LoadedAssembly:
    """One module the host loaded. Index 0 of the host's list is the game itself."""

    dll_name: str
    name: str
    url: str = ""
    version_major: int = 0
    version_minor: int = 0
    module: Optional[ModuleType] = None
    distribution: Optional[str] = None

    def file_version(self) -> str:
        # AttributeError when there is no module or it has no __version__.
        return str(self.module.__version__)

    def informational_version(self) -> str:
        return importlib.metadata.version(self.distribution or self.name)


class Host:
    """Base class for host adapters."""

    def __init__(self, root_path):
        self.root_path = Path(root_path)

    def loaded_assemblies(self) -> Sequence[LoadedAssembly]:
        raise NotImplementedError

    def current_scene(self) -> str:
        raise NotImplementedError

    def game_version(self) -> GameVersion:
        raise NotImplementedError
