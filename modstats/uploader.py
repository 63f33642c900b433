"""
Uploader — delivers queued reports to the collection endpoint.

Delivery is ordered and stops at the first failure: one failed upload
usually means the endpoint or the network is down, so later reports are
left for the next flush (start-up and shutdown). A report is removed from
the store only after a 2xx response.
"""

import threading

import requests

from .config import log
from .constants import API_TIMEOUT_SUBMIT, SUBMIT_URL
from . import http_client


class Uploader:
    def __init__(self, url=SUBMIT_URL, session=None, timeout=API_TIMEOUT_SUBMIT):
        self._url = url
        self._session = session
        self._timeout = timeout
        self._in_flight = False
        self._rerun = False
        self._in_flight_lock = threading.Lock()

    @property
    def session(self):
        return self._session or http_client.http

    @property
    def in_flight(self):
        return self._in_flight

    def deliver(self, slot_id, report):
        """POST one report. Returns True on a 2xx response."""
        headers = http_client.component_headers()
        headers["Content-Type"] = "application/json"
        try:
            resp = self.session.post(
                self._url, data=report.to_json(), headers=headers, timeout=self._timeout,
            )
        except requests.RequestException as e:
            log.error("Could not upload %s: %s", slot_id, e)
            return False

        if 200 <= resp.status_code < 300:
            log.info("%s sent successfully", slot_id)
            return True
        log.error("Could not upload %s: HTTP %d", slot_id, resp.status_code)
        return False

    def flush(self, store):
        """Upload pending reports in order. Returns (sent, remaining)."""
        pending = store.list_pending()
        sent = 0
        for slot_id, report in pending:
            if not self.deliver(slot_id, report):
                break
            store.remove(slot_id)
            sent += 1

        remaining = len(pending) - sent
        if pending:
            log.info("Flushed %d reports (%d still pending)", sent, remaining)
        return sent, remaining

    def flush_async(self, store, on_complete=None):
        """Run ``flush`` on a worker thread. At most one runs at a time.

        ``on_complete((sent, remaining))`` is called from the worker. If a
        flush is already in flight, returns False and that worker flushes
        once more before finishing, so reports queued meanwhile still go out.
        """
        with self._in_flight_lock:
            if self._in_flight:
                self._rerun = True
                return False
            self._in_flight = True

        def do_flush():
            sent, remaining = 0, 0
            while True:
                try:
                    batch_sent, remaining = self.flush(store)
                    sent += batch_sent
                except Exception as e:
                    log.error("Upload thread error: %s", e, exc_info=True)
                with self._in_flight_lock:
                    if not self._rerun:
                        self._in_flight = False
                        break
                    self._rerun = False
            if on_complete is not None:
                on_complete((sent, remaining))

        threading.Thread(target=do_flush, name="modstats-upload", daemon=True).start()
        return True
