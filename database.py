# ─────────────────────────────────────────────────────────────────
# database.py — Durable Record Store
#
# SEPARATION OF CONCERNS:
# This file owns all data storage for the application.
# Nothing else in the project needs to know HOW records are kept,
# only that they can be read and written through RecordStore.
#
# ON-DISK FORMAT:
# One subscriber per line, fields separated by a single space:
#
#   <key> <lat> <lon> [<last_alert>]
#   42 59.4370000 24.7536000
#   7 58.3780000 26.7290000 1700000000
#
# Coordinates always carry 7 decimal digits. The whole file is
# rewritten on every change. There is no append log.
# ─────────────────────────────────────────────────────────────────

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

from models import Location, Record

logger = logging.getLogger("database")


class StoreError(Exception):
    """The backing file could not be read, parsed or written."""


def parse_record(line: str, lineno: int = 0):
    """
    Parses one stored line into (key, Record).

    Raises StoreError on anything that does not match
    `key lat lon [last_alert]`.
    """
    parts = line.split()
    if len(parts) not in (3, 4):
        raise StoreError(f"line {lineno}: expected 3 or 4 fields, got {len(parts)}: {line!r}")

    try:
        key = int(parts[0])
        location = Location(float(parts[1]), float(parts[2]))
        last_alert = int(parts[3]) if len(parts) == 4 else None
    except ValueError as exc:
        raise StoreError(f"line {lineno}: malformed record {line!r}: {exc}") from exc

    if last_alert is not None and last_alert < 0:
        raise StoreError(f"line {lineno}: negative alert timestamp in {line!r}")

    return key, Record(location, last_alert)


def format_record(key: int, record: Record) -> str:
    line = f"{key} {record.location.lat:.7f} {record.location.lon:.7f}"
    if record.last_alert is not None:
        line += f" {record.last_alert}"
    return line + "\n"


class RecordStore:
    """
    Maps subscriber key → Record and mirrors every change to a file.

    Every mutating method holds one lock across the in-memory change
    and the file rewrite, so readers of the file never see a half
    applied update. If the rewrite fails the in-memory change is
    rolled back and StoreError is raised.
    """

    def __init__(self, path: Union[str, Path], records: Optional[Dict[int, Record]] = None):
        self.path = Path(path)
        self._records: Dict[int, Record] = dict(records or {})
        self._lock = asyncio.Lock()

    @classmethod
    def load(cls, path: Union[str, Path]) -> "RecordStore":
        path = Path(path)

        # First start: nothing persisted yet
        if not path.exists():
            logger.info(f"📂 No store at '{path}' yet, starting empty")
            return cls(path)

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"cannot read store '{path}': {exc}") from exc

        records = {}
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            key, record = parse_record(line, lineno)
            logger.debug(f"record {key}: {record}")
            records[key] = record

        logger.info(f"📂 Loaded {len(records)} record(s) from '{path}'")
        return cls(path, records)

    def all(self) -> Dict[int, Record]:
        return dict(self._records)

    def get(self, key: int) -> Optional[Record]:
        return self._records.get(key)

    def __contains__(self, key) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    async def upsert_location(self, key: int, location: Location):
        """
        Creates or replaces a subscriber's record.

        Flow:
        1. Take the store lock (held until the file is rewritten)
        2. Store the location with NO alert time, a new location
           always starts without alert history
        3. Rewrite the whole file; on failure restore the old record
           and raise StoreError
        """

        async with self._lock:
            previous = self._records.get(key)
            self._records[key] = Record(location, None)
            self._save_or_restore(key, previous)

    async def upsert_alert_timestamp(self, key: int, timestamp: int):
        """
        Records when a check last fired for `key`.

        Unknown keys are ignored without touching the file. That is
        what happens when a check finishes just after remove().
        """

        async with self._lock:
            previous = self._records.get(key)
            if previous is None:
                logger.debug(f"alert timestamp for unknown key {key} ignored")
                return
            self._records[key] = previous._replace(last_alert=timestamp)
            self._save_or_restore(key, previous)

    async def delete(self, key: int):
        """Removes a record. Absent keys are a no-op and skip the rewrite."""

        async with self._lock:
            previous = self._records.pop(key, None)
            if previous is None:
                return
            self._save_or_restore(key, previous)

    def _save_or_restore(self, key: int, previous: Optional[Record]):
        try:
            self._save()
        except StoreError:
            if previous is None:
                self._records.pop(key, None)
            else:
                self._records[key] = previous
            raise

    def _save(self):
        payload = "".join(format_record(key, self._records[key]) for key in sorted(self._records))
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.error(f"❌ Failed to write store '{self.path}': {exc}")
            raise StoreError(f"cannot write store '{self.path}': {exc}") from exc
