"""
Catalog of Xcode versions available for download.

The catalog is fetched from a configured URL returning a JSON array:

    [
      {"version": "11.0.0", "prerelease": "Beta", "index": 7,
       "url": "https://.../Xcode_11_Beta_7.xip", "sha256": "..."},
      {"version": "10.2.1", "url": "https://.../Xcode_10.2.1.xip"}
    ]

and cached in ``<state dir>/catalog.json``. Commands use the cached snapshot
unless ``should_refresh()`` says it is missing or stale.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests
from requests.exceptions import RequestException

from xcodeskit.core.exceptions import CatalogError, InvalidVersionError
from xcodeskit.core.filesystem import atomic_write
from xcodeskit.toolchain.version import Version

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class CatalogEntry:
    """A version that can be downloaded."""

    version: Version
    url: str
    sha256: Optional[str] = None
    installed: bool = False

    @property
    def key(self) -> tuple:
        return (self.version.components, self.version.prerelease, self.version.index or 0)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogEntry":
        """
        Build an entry from a catalog record.

        Raises:
            CatalogError: If the record is missing fields or has a bad version
        """
        try:
            version = Version.parse(str(data["version"]))
            url = str(data["url"])
        except KeyError as e:
            raise CatalogError(f"Catalog record missing field {e}: {data}") from e
        except InvalidVersionError as e:
            raise CatalogError(f"Catalog record has invalid version: {e}") from e

        if data.get("prerelease"):
            index = data.get("index")
            try:
                index = int(index) if index is not None else None
            except (TypeError, ValueError) as e:
                raise CatalogError(f"Catalog record has invalid index: {data}") from e
            version = replace(version, prerelease=str(data["prerelease"]), index=index)

        return cls(version=version, url=url, sha256=data.get("sha256"))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": ".".join(str(part) for part in self.version.components),
            "url": self.url,
        }
        if self.version.prerelease:
            data["prerelease"] = self.version.label_display
            if self.version.index is not None:
                data["index"] = self.version.index
        if self.sha256:
            data["sha256"] = self.sha256
        return data


def parse_entries(records: Any) -> List[CatalogEntry]:
    """
    Parse raw catalog records, keeping the first record for duplicate keys.

    Raises:
        CatalogError: If records is not a list or a record is invalid
    """
    if not isinstance(records, list):
        raise CatalogError("Catalog must be a JSON array of version records")

    entries: List[CatalogEntry] = []
    seen = set()
    for record in records:
        if not isinstance(record, dict):
            raise CatalogError(f"Catalog record is not an object: {record!r}")
        entry = CatalogEntry.from_dict(record)
        if entry.key in seen:
            logger.warning(f"Duplicate catalog entry ignored: {entry.version}")
            continue
        seen.add(entry.key)
        entries.append(entry)
    return entries


def mark_installed(entries: Sequence[CatalogEntry], installed: Sequence[Any]) -> List[CatalogEntry]:
    """Return copies of entries flagged when an equivalent version is installed."""
    return [
        replace(
            entry,
            installed=any(entry.version.is_equivalent(t.version) for t in installed),
        )
        for entry in entries
    ]


class Catalog:
    """
    Cached catalog with its own refresh policy.

    Example:
        >>> catalog = Catalog(cache_path, catalog_url="https://example.com/catalog.json")
        >>> if catalog.should_refresh():
        ...     await catalog.refresh()
        >>> catalog.available_entries()
    """

    def __init__(
        self,
        cache_path: Path,
        catalog_url: Optional[str] = None,
        max_age_hours: float = 24.0,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.cache_path = Path(cache_path)
        self.catalog_url = catalog_url
        self.max_age = timedelta(hours=max_age_hours)
        self.timeout = timeout
        self.session = session
        self._entries: Optional[List[CatalogEntry]] = None
        self._updated: Optional[datetime] = None

    def _load_cache(self):
        if self._entries is not None:
            return

        self._entries = []
        self._updated = None
        if not self.cache_path.exists():
            logger.debug(f"No catalog cache at {self.cache_path}")
            return

        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._entries = parse_entries(data.get("entries"))
            self._updated = datetime.fromisoformat(data["updated"])
        except (OSError, ValueError, KeyError, AttributeError, CatalogError) as e:
            logger.warning(f"Ignoring unreadable catalog cache {self.cache_path}: {e}")
            self._entries = []
            self._updated = None

    def available_entries(self) -> List[CatalogEntry]:
        """Entries from the last cached snapshot, sorted ascending."""
        self._load_cache()
        return sorted(self._entries, key=lambda e: e.version.sort_key())

    def should_refresh(self) -> bool:
        """True when the cache is missing, empty or older than the maximum age."""
        self._load_cache()
        if not self._entries or self._updated is None:
            return True
        return datetime.now() - self._updated > self.max_age

    def _fetch(self) -> List[CatalogEntry]:
        if not self.catalog_url:
            raise CatalogError(
                "No catalog_url configured; add one to the xcodeskit configuration"
            )

        logger.info(f"Fetching catalog from {self.catalog_url}")
        http = self.session or requests
        try:
            response = http.get(self.catalog_url, timeout=self.timeout)
            response.raise_for_status()
        except RequestException as e:
            raise CatalogError(f"Could not fetch catalog: {e}") from e

        try:
            records = response.json()
        except ValueError as e:
            raise CatalogError(f"Catalog response is not valid JSON: {e}") from e

        return parse_entries(records)

    async def refresh(self) -> List[CatalogEntry]:
        """
        Fetch the catalog and replace the cached snapshot.

        Raises:
            CatalogError: If fetching, parsing or caching fails
        """
        entries = await asyncio.to_thread(self._fetch)
        updated = datetime.now()

        payload = {
            "version": CACHE_FORMAT_VERSION,
            "updated": updated.isoformat(),
            "entries": [entry.to_dict() for entry in entries],
        }
        try:
            atomic_write(self.cache_path, json.dumps(payload, indent=2))
        except OSError as e:
            raise CatalogError(f"Could not write catalog cache: {e}") from e

        self._entries = entries
        self._updated = updated
        logger.info(f"Catalog updated: {len(entries)} versions available")
        return self.available_entries()
