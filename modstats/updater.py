"""
UpdateChecker — downloads replacement plugin files listed by a manifest.

The manifest endpoint returns a JSON array of ``{"url": ..., "path": ...}``
entries. Each file is fetched and written under the plugin folder at its
relative ``path``. Only runs when the player opted in (``update = true``).
"""

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from .config import log
from .constants import API_TIMEOUT_DOWNLOAD, API_TIMEOUT_MANIFEST, UPDATE_MANIFEST_URL, VERSION
from . import http_client


class ManifestError(ValueError):
    """The update manifest is malformed or names a path outside the plugin folder."""


@dataclass(frozen=True)
class UpdateEntry:
    url: str
    path: str


@dataclass(frozen=True)
class DownloadResult:
    entry: UpdateEntry
    target: Optional[Path] = None
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.error is None


def parse_manifest(payload):
    if not isinstance(payload, list):
        raise ManifestError("manifest must be a list, got %s" % type(payload).__name__)
    entries = []
    for item in payload:
        if not isinstance(item, dict):
            raise ManifestError("manifest entry must be an object: %r" % (item,))
        url, path = item.get("url"), item.get("path")
        if not isinstance(url, str) or not isinstance(path, str) or not url or not path:
            raise ManifestError("manifest entry needs string url and path: %r" % (item,))
        entries.append(UpdateEntry(url=url, path=path))
    return entries


class UpdateChecker:
    def __init__(self, install_dir, manifest_url=UPDATE_MANIFEST_URL, session=None):
        self._install_dir = Path(install_dir)
        self._manifest_url = manifest_url
        self._session = session

    @property
    def session(self):
        return self._session or http_client.http

    def fetch_manifest(self):
        """GET and parse the manifest. Raises RequestException or ManifestError."""
        resp = self.session.get(
            self._manifest_url,
            params={"version": VERSION},
            headers=http_client.component_headers(),
            timeout=API_TIMEOUT_MANIFEST,
        )
        resp.raise_for_status()
        try:
            payload = resp.json()
        except ValueError as e:
            raise ManifestError("manifest is not JSON: %s" % e) from e
        return parse_manifest(payload)

    def resolve_target(self, entry):
        root = self._install_dir.resolve()
        target = (root / entry.path).resolve()
        if target == root or root not in target.parents:
            raise ManifestError("path escapes the plugin folder: %s" % entry.path)
        return target

    def download(self, entry):
        """Fetch one file and write it in place. Returns the written path."""
        target = self.resolve_target(entry)
        resp = self.session.get(entry.url, timeout=API_TIMEOUT_DOWNLOAD)
        resp.raise_for_status()

        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".download")
        tmp.write_bytes(resp.content)
        os.replace(tmp, target)
        log.info("Updated %s", entry.path)
        return target

    def _try_download(self, entry):
        try:
            return DownloadResult(entry, target=self.download(entry))
        except (requests.RequestException, OSError, ManifestError) as e:
            log.error("Could not download %s: %s", entry.path, e)
            return DownloadResult(entry, error=e)

    def _try_fetch_manifest(self):
        try:
            return self.fetch_manifest()
        except (requests.RequestException, ManifestError) as e:
            log.error("Update check failed: %s", e)
            return None

    def check(self):
        """Synchronous update cycle. Returns one DownloadResult per manifest entry."""
        entries = self._try_fetch_manifest()
        if entries is None:
            return []
        log.info("Update manifest lists %d files", len(entries))
        return [self._try_download(entry) for entry in entries]

    def check_async(self, on_result=None):
        """Fetch the manifest on a worker, then download each entry on its own worker.

        ``on_result(DownloadResult)`` is called once per entry, from the worker.
        """

        def download_one(entry):
            result = self._try_download(entry)
            if on_result is not None:
                on_result(result)

        def run():
            entries = self._try_fetch_manifest()
            if not entries:
                return
            log.info("Update manifest lists %d files", len(entries))
            for entry in entries:
                threading.Thread(
                    target=download_one, args=(entry,), name="modstats-download", daemon=True,
                ).start()

        threading.Thread(target=run, name="modstats-update", daemon=True).start()
