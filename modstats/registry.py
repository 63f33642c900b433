"""
Version arbitration between copies of ModStatistics loaded into one process.

Every mod may bundle its own copy of this package, so several structurally
identical ``ModStatistics`` classes can be importable at once. Each copy
declares its version in a ``_version`` class attribute. At start-up every
copy scans the loaded modules, and only the copy whose own version equals
the highest declared version keeps running.

The winner immediately overwrites its marker with ``sys.maxsize``. Any copy
that arbitrates later sees that value and yields, and a second call from the
winner itself yields too, so no process ever elects the same copy twice.

Two copies declaring the same maximum both elect themselves when evaluated
against the same snapshot. In sequential start-up the first one to claim
wins and the other sees the sentinel.
"""

import sys
import threading
from dataclasses import dataclass

from .config import log
from .constants import COMPONENT_NAME, VERSION_MARKER

SENTINEL = sys.maxsize

_claim_lock = threading.Lock()


@dataclass(frozen=True)
class InstanceDescriptor:
    type_name: str
    version: int


@dataclass(frozen=True)
class ArbitrationResult:
    winning_version: int
    is_self: bool


def read_declared_version(candidate):
    """Return the integer marker of a candidate class, or None."""
    marker = getattr(candidate, VERSION_MARKER, None)
    if isinstance(marker, bool) or not isinstance(marker, int):
        return None
    return marker


def find_candidates(modules=None, type_name=COMPONENT_NAME):
    """Yield each distinct class called ``type_name`` exposed by a loaded module."""
    if modules is None:
        modules = list(sys.modules.values())

    seen = set()
    for module in modules:
        try:
            candidate = getattr(module, type_name, None)
            if not isinstance(candidate, type) or candidate.__name__ != type_name:
                continue
        except Exception:
            # Lazy modules can run arbitrary code on attribute access.
            continue
        if id(candidate) in seen:
            continue
        seen.add(id(candidate))
        yield candidate


def winners(descriptors):
    """Return every descriptor declaring the maximum version."""
    descriptors = list(descriptors)
    if not descriptors:
        return []
    highest = max(d.version for d in descriptors)
    return [d for d in descriptors if d.version == highest]


def elect(self_version, declared_versions):
    highest = max(declared_versions, default=self_version)
    return ArbitrationResult(winning_version=highest, is_self=self_version == highest)


class VersionRegistry:
    """Arbitrates on behalf of one component class."""

    def __init__(self, component, modules=None):
        self._component = component
        self._modules = modules

    def descriptors(self):
        found = []
        candidates = list(find_candidates(self._modules, self._component.__name__))
        if self._component not in candidates:
            candidates.append(self._component)
        for candidate in candidates:
            try:
                version = read_declared_version(candidate)
            except Exception:
                continue
            if version is not None:
                found.append(InstanceDescriptor(candidate.__name__, version))
        return found

    def arbitrate(self, self_version):
        with _claim_lock:
            descriptors = self.descriptors()
            result = elect(self_version, [d.version for d in descriptors])
            if result.is_self:
                setattr(self._component, VERSION_MARKER, SENTINEL)
        if result.is_self:
            tied = winners(descriptors)
            if len(tied) > 1:
                log.info("%d copies declare version %d; this one runs", len(tied), result.winning_version)
        return result
