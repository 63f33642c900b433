from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import requests

from modstats import report as report_module
from modstats.app import ModStatistics
from modstats.constants import VERSION
from modstats.host import GameVersion, Host, LoadedAssembly

T0 = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock the test advances by hand."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeHost(Host):
    def __init__(self, root_path: Path, assemblies=None, scene: str = "MAINMENU") -> None:
        super().__init__(root_path)
        self.scene = scene
        self.assemblies = list(assemblies) if assemblies is not None else [
            LoadedAssembly(dll_name="Assembly-CSharp", name="Assembly-CSharp"),
            LoadedAssembly(dll_name="ModStatistics", name="ModStatistics", url="ModStatistics"),
        ]
        self.version = GameVersion(major=0, minor=23, revision=5, build=464, is_steam=True)

    def loaded_assemblies(self):
        return self.assemblies

    def current_scene(self) -> str:
        return self.scene

    def game_version(self) -> GameVersion:
        return self.version


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, content: bytes = b"") -> None:
        self.status_code = status_code
        self._payload = payload
        self.content = content

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError("HTTP %d" % self.status_code)


class FakeSession:
    """Records requests; answers from a queue of responses or exceptions."""

    def __init__(self, responses=None, routes=None) -> None:
        self.responses = list(responses or [])
        self.routes = dict(routes or {})
        self.posts: list[dict] = []
        self.gets: list[dict] = []

    def _answer(self, url):
        if url in self.routes:
            answer = self.routes[url]
        elif self.responses:
            answer = self.responses.pop(0)
        else:
            answer = FakeResponse(200)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def post(self, url, data=None, headers=None, timeout=None):
        self.posts.append({"url": url, "data": data, "headers": headers})
        return self._answer(url)

    def get(self, url, params=None, headers=None, timeout=None):
        self.gets.append({"url": url, "params": params})
        return self._answer(url)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def host(tmp_path: Path) -> FakeHost:
    return FakeHost(tmp_path)


@pytest.fixture(autouse=True)
def reset_process_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Arbitration marker and inspection-failure log are process-wide."""
    monkeypatch.setattr(ModStatistics, "_version", VERSION)
    monkeypatch.setattr(report_module, "_inspection_failures", set())
