"""
Core-mod manifest and download mirror table.

Both are remote JSON documents refreshed on demand:

    manifest  {"<app version>": {"mods": [{"id", "version", "downloadLink"}]}}
    mirrors   {"<original url>": {"mirrorUrl": "<faster url>"}}

Refreshes are cancel-then-replace: starting a refresh cancels the one
in flight, and only the newest refresh may apply its result. A failed
refresh keeps whatever was loaded before.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from modpatcher.core.models.mod import CoreModEntry
from modpatcher.core.services.http import FetchCancelled, FetchError, get_json

logger = logging.getLogger(__name__)

FetchJson = Callable[[str, threading.Event | None], Any]


def _default_fetch(timeout: float | None) -> FetchJson:
    def fetch(url: str, cancel: threading.Event | None) -> Any:
        return get_json(url, timeout=timeout, cancel=cancel)
    return fetch


class _Refresher:
    """Generation bookkeeping shared by the manifest and the mirror table."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._generation = 0
        self._cancel: threading.Event | None = None

    def begin(self) -> tuple[int, threading.Event]:
        """Cancel the in-flight refresh and start a new generation."""
        with self._guard:
            if self._cancel is not None:
                self._cancel.set()
            self._generation += 1
            self._cancel = threading.Event()
            return self._generation, self._cancel

    def invalidate(self) -> None:
        """Cancel the in-flight refresh without starting another."""
        with self._guard:
            if self._cancel is not None:
                self._cancel.set()
                self._cancel = None
            self._generation += 1

    def commit(self, generation: int, apply: Callable[[], None]) -> bool:
        """Run ``apply`` only if ``generation`` is still the newest."""
        with self._guard:
            if generation != self._generation:
                return False
            apply()
            self._cancel = None
            return True


# ═══════════════════════════════════════════════════════════════════
#  Core-mod manifest
# ═══════════════════════════════════════════════════════════════════


class CoreModManifest:
    """Required mods per app version for the configured target app."""

    def __init__(
        self,
        manifest_urls: dict[str, str],
        app_id: str,
        fetch_json: FetchJson | None = None,
        timeout: float | None = None,
    ):
        self._urls = dict(manifest_urls)
        self._app_id = app_id
        self._fetch = fetch_json or _default_fetch(timeout)
        self._refresher = _Refresher()
        self._entries: dict[str, list[CoreModEntry]] = {}
        self._loaded = False

    @property
    def app_id(self) -> str:
        return self._app_id

    @app_id.setter
    def app_id(self, value: str) -> None:
        """Retarget. Cancels any refresh in flight and drops loaded data."""
        if value == self._app_id:
            return
        self._refresher.invalidate()
        self._app_id = value
        self._entries = {}
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def versions(self) -> list[str]:
        return list(self._entries)

    def refresh(self) -> bool:
        """Fetch the manifest for the current app.

        Returns:
            True if the result was applied. False when the fetch failed
            (previous data kept) or a newer refresh superseded this one.
        """
        generation, cancel = self._refresher.begin()
        app_id = self._app_id
        url = self._urls.get(app_id)

        if url is None:
            logger.warning("No core mod manifest is known for %s", app_id)
            entries: dict[str, list[CoreModEntry]] = {}
        else:
            try:
                entries = self._parse(self._fetch(url, cancel))
            except FetchCancelled:
                logger.debug("Core mod refresh superseded")
                return False
            except (FetchError, ValueError) as e:
                logger.warning("Failed to refresh core mods, keeping previous data: %s", e)
                return False

        def apply() -> None:
            self._entries = entries
            self._loaded = True

        if not self._refresher.commit(generation, apply):
            logger.debug("Discarding stale core mod refresh for %s", app_id)
            return False

        logger.info("Core mods loaded for %d %s versions", len(entries), app_id)
        return True

    @staticmethod
    def _parse(raw: Any) -> dict[str, list[CoreModEntry]]:
        if not isinstance(raw, dict):
            raise ValueError(f"expected an object, got {type(raw).__name__}")
        parsed: dict[str, list[CoreModEntry]] = {}
        for version, block in raw.items():
            mods = block.get("mods", []) if isinstance(block, dict) else []
            try:
                parsed[version] = [CoreModEntry.model_validate(m) for m in mods]
            except ValidationError as e:
                raise ValueError(f"bad entry for {version}: {e}") from e
        return parsed

    def get_required(self, app_version: str) -> list[CoreModEntry]:
        """Required mods for an app version. Empty when none are known."""
        return list(self._entries.get(app_version, []))


# ═══════════════════════════════════════════════════════════════════
#  Mirror table
# ═══════════════════════════════════════════════════════════════════


class MirrorResolver:
    """Substitute download URLs from a cached mirror table.

    The table is refreshed at most once per ``refresh_interval`` seconds,
    counted from the last *successful* refresh. Anything not in the
    table, or any lookup before a table was ever loaded, passes through
    unchanged.
    """

    def __init__(
        self,
        table_url: str | None,
        refresh_interval: float = 300.0,
        fetch_json: FetchJson | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._url = table_url
        self._interval = refresh_interval
        self._fetch = fetch_json or _default_fetch(timeout)
        self._clock = clock
        self._refresher = _Refresher()
        self._table: dict[str, str] = {}
        self._last_refresh: float | None = None

    @property
    def table(self) -> dict[str, str]:
        return dict(self._table)

    def is_stale(self) -> bool:
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh >= self._interval

    def refresh(self, force: bool = False) -> bool:
        """Reload the table if stale (or forced). Returns True if applied."""
        if self._url is None or not (force or self.is_stale()):
            return False

        generation, cancel = self._refresher.begin()
        try:
            raw = self._fetch(self._url, cancel)
            table = self._parse(raw)
        except FetchCancelled:
            return False
        except (FetchError, ValueError) as e:
            logger.warning("Failed to refresh download mirrors: %s", e)
            return False

        def apply() -> None:
            self._table = table
            self._last_refresh = self._clock()

        applied = self._refresher.commit(generation, apply)
        if applied:
            logger.debug("Loaded %d download mirrors", len(table))
        return applied

    @staticmethod
    def _parse(raw: Any) -> dict[str, str]:
        if not isinstance(raw, dict):
            raise ValueError(f"expected an object, got {type(raw).__name__}")
        table = {}
        for original, entry in raw.items():
            if isinstance(entry, dict) and isinstance(entry.get("mirrorUrl"), str):
                table[original] = entry["mirrorUrl"]
        return table

    def resolve(self, original_url: str) -> str:
        """Mirror for a URL, or the URL itself."""
        self.refresh()
        mirror = self._table.get(original_url)
        if mirror is None:
            return original_url
        logger.info("Using mirror %s for %s", mirror, original_url)
        return mirror
