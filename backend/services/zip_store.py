"""Persistent set of ZIP codes the background refresh keeps warm.

Stored as JSON:

    {"zipCodes": ["75035", "75454"], "lastUpdated": "2026-01-15T12:00:00+00:00"}

The in-memory set is authoritative; a failed write is logged and the
process keeps going with what it has.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from errors import InvalidInput
from services.geocoding import ZIP_RE, normalize_zip

logger = logging.getLogger(__name__)


def _valid_zips(values: Iterable) -> set[str]:
    return {v.strip() for v in values if isinstance(v, str) and ZIP_RE.match(v.strip())}


class TrackedZipStore:
    def __init__(self, path: str | Path, seed: Iterable[str] = ()):
        self.path = Path(path)
        self._seed = list(seed)
        self._zips: set[str] = set()
        self._loaded = False
        # add/remove run in worker threads (asyncio.to_thread)
        self._lock = threading.RLock()

    def load(self) -> list[str]:
        """Return all tracked ZIP codes, reading the file on first use."""
        with self._lock:
            if not self._loaded:
                self._zips = self._read()
                self._loaded = True
            return sorted(self._zips)

    def _read(self) -> set[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            zips = _valid_zips(data.get("zipCodes", []))
            logger.info("Loaded %d tracked ZIP codes from %s", len(zips), self.path)
            return zips
        except FileNotFoundError:
            logger.info("No tracked ZIP file at %s", self.path)
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Ignoring unreadable tracked ZIP file %s: %s", self.path, e)

        zips = _valid_zips(self._seed)
        if zips:
            logger.info("Seeding %d tracked ZIP codes from environment", len(zips))
            self._zips = zips
            self._save()
        return zips

    def add(self, zip_code: str) -> bool:
        """Track a ZIP code. Returns True if it was new."""
        zip_code = normalize_zip(zip_code)
        with self._lock:
            self.load()
            if zip_code in self._zips:
                return False
            self._zips.add(zip_code)
            logger.info("Tracking new ZIP code %s", zip_code)
            self._save()
            return True

    def remove(self, zip_code: str) -> bool:
        """Stop tracking a ZIP code. Returns True if it was tracked."""
        self.load()
        try:
            zip_code = normalize_zip(zip_code)
        except InvalidInput:
            return False
        with self._lock:
            if zip_code not in self._zips:
                return False
            self._zips.discard(zip_code)
            logger.info("Removed tracked ZIP code %s", zip_code)
            self._save()
            return True

    def _save(self) -> None:
        data = {
            "zipCodes": sorted(self._zips),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.error("Failed to save tracked ZIP codes to %s: %s", self.path, e)

    def stats(self) -> dict:
        return {
            "totalZipCodes": len(self.load()),
            "zipCodes": self.load(),
            "storageFile": str(self.path),
        }

    def __contains__(self, zip_code: str) -> bool:
        self.load()
        return zip_code in self._zips

    def __len__(self) -> int:
        return len(self.load())
