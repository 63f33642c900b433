from __future__ import annotations

import json
import threading
import uuid
from dataclasses import replace
from pathlib import Path

import pytest
import requests
from conftest import FakeHost, FakeResponse, FakeSession, ManualClock

from modstats.constants import BUILD_VERSION, SUBMIT_URL, VERSION
from modstats.report import ReportBuilder
from modstats.session_clock import SessionClock
from modstats.state import SessionState
from modstats.store import ReportStore
from modstats.uploader import Uploader


@pytest.fixture
def store(tmp_path: Path, host: FakeHost, clock: ManualClock) -> ReportStore:
    session_clock = SessionClock(SessionState(id=uuid.uuid4(), started_at=clock()), clock)
    session_clock.on_scene_observed("FLIGHT")
    clock.advance(5)
    report = ReportBuilder(session_clock, host, clock).build_final()

    store = ReportStore(tmp_path / "queue")
    for index in range(3):
        store.commit_final(replace(report, id="%032x" % index))
    return store


def _sent_ids(session: FakeSession) -> list[str]:
    return [json.loads(post["data"])["id"] for post in session.posts]


def test_flush_delivers_in_order_and_removes(store: ReportStore) -> None:
    session = FakeSession()

    assert Uploader(session=session).flush(store) == (3, 0)
    assert _sent_ids(session) == ["%032x" % i for i in range(3)]
    assert store.list_pending() == []


def test_failure_keeps_entry_and_stops_the_cycle(store: ReportStore) -> None:
    session = FakeSession([FakeResponse(201), FakeResponse(500), FakeResponse(200)])

    assert Uploader(session=session).flush(store) == (1, 2)
    assert len(session.posts) == 2
    assert [slot for slot, _ in store.list_pending()] == ["report-1", "report-2"]


def test_transport_error_is_logged_not_raised(store: ReportStore, caplog: pytest.LogCaptureFixture) -> None:
    session = FakeSession([requests.ConnectionError("offline")])

    assert Uploader(session=session).flush(store) == (0, 3)
    assert "Could not upload report-0" in caplog.text
    assert len(store.list_pending()) == 3


def test_next_flush_retries_what_was_left(store: ReportStore) -> None:
    uploader = Uploader(session=FakeSession([FakeResponse(503)]))
    uploader.flush(store)

    assert uploader.flush(store) == (3, 0)


def test_request_identifies_component(store: ReportStore) -> None:
    session = FakeSession()
    Uploader(session=session).flush(store)

    post = session.posts[0]
    assert post["url"] == SUBMIT_URL
    assert post["headers"]["User-Agent"] == "ModStatistics/%d" % VERSION
    assert post["headers"]["X-ModStatistics-Build"] == BUILD_VERSION
    assert post["headers"]["X-ModStatistics-Protocol"] == str(VERSION)
    assert post["headers"]["Content-Type"] == "application/json"


def test_redirect_or_client_error_is_not_success(store: ReportStore) -> None:
    session = FakeSession([FakeResponse(302)])

    assert Uploader(session=session).flush(store) == (0, 3)


def test_flush_async_reports_completion(store: ReportStore) -> None:
    done = threading.Event()
    results = []

    def on_complete(result):
        results.append(result)
        done.set()

    uploader = Uploader(session=FakeSession())
    assert uploader.flush_async(store, on_complete) is True
    assert done.wait(5)

    assert results == [(3, 0)]
    assert uploader.in_flight is False


def test_only_one_flush_in_flight(store: ReportStore) -> None:
    release = threading.Event()
    done = threading.Event()

    class SlowSession(FakeSession):
        def post(self, url, data=None, headers=None, timeout=None):
            release.wait(5)
            return super().post(url, data=data, headers=headers, timeout=timeout)

    uploader = Uploader(session=SlowSession())
    assert uploader.flush_async(store, lambda result: done.set()) is True
    assert uploader.flush_async(store) is False

    release.set()
    assert done.wait(5)


def test_unreadable_queue_file_does_not_block_delivery(store: ReportStore) -> None:
    store.slot_path("report-0").write_bytes(b"\xff\xfe\x00")
    session = FakeSession()

    assert Uploader(session=session).flush(store) == (2, 0)
    assert _sent_ids(session) == ["%032x" % i for i in (1, 2)]


def test_flush_requested_while_busy_runs_once_more(store: ReportStore) -> None:
    release = threading.Event()
    done = threading.Event()
    results = []

    class SlowSession(FakeSession):
        def post(self, url, data=None, headers=None, timeout=None):
            release.wait(5)
            return super().post(url, data=data, headers=headers, timeout=timeout)

    def on_complete(result):
        results.append(result)
        done.set()

    session = SlowSession()
    uploader = Uploader(session=session)
    assert uploader.flush_async(store, on_complete) is True
    # Queued while the first pass may already hold its list of pending reports.
    late = replace(store.list_pending()[0][1], id="%032x" % 99)
    store.commit_final(late)
    assert uploader.flush_async(store) is False

    release.set()
    assert done.wait(5)

    assert "%032x" % 99 in _sent_ids(session)
    assert store.list_pending() == []
    assert results == [(4, 0)]
    assert uploader.in_flight is False
