# ─────────────────────────────────────────────────────────────────
# scheduler.py — One background check loop per subscriber
#
# Every subscriber gets its own asyncio Task that wakes up every
# few minutes, decides whether a fresh check is due and, when the
# check comes back positive, records the alert time.
#
# asyncio.sleep() pauses ONLY that subscriber's loop, so thousands of
# loops share one event loop without blocking each other or the API.
#
# The registry (key → Task) is only touched under one asyncio.Lock,
# and only for the short add/remove bookkeeping, never across a
# check or a sleep.
# ─────────────────────────────────────────────────────────────────

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, List, Optional

from database import StoreError
from models import Location

logger = logging.getLogger("scheduler")

# No new check until this many seconds after the last alert
COOLDOWN_SECONDS = 14400

# Each sleep gets a random extra in [0, MAX_JITTER_SECONDS)
MAX_JITTER_SECONDS = 60

CheckFn = Callable[[int, Location, int], Awaitable[bool]]
CreateRecordFn = Callable[[int, Location], Awaitable[None]]
UpdateRecordFn = Callable[[int, int], Awaitable[None]]
RemoveRecordFn = Callable[[int], Awaitable[None]]


def _now() -> int:
    return int(time.time())


def _jitter() -> float:
    # random() is in [0, 1), so the jitter never reaches the upper bound
    return random.random() * MAX_JITTER_SECONDS


async def check_and_alert(
    key: int,
    location: Location,
    last_alert: Optional[int],
    check: CheckFn,
    update_record: UpdateRecordFn,
    now: int,
) -> Optional[int]:
    """
    Runs one iteration's decision for a subscriber and returns the
    alert timestamp to carry into the next iteration.

    A check only happens once the subscriber has alerted before AND
    the cool-down has fully passed. Subscribers with no alert history
    are never checked here.
    """

    should_check = last_alert is not None and now - last_alert > COOLDOWN_SECONDS
    if not should_check:
        return last_alert

    try:
        alerted = await check(key, location, now)
    except Exception as exc:
        # Check failures stay local to this subscriber and this tick
        logger.error(f"❌ Check failed for {key}: {exc!r}")
        return last_alert

    if not alerted:
        return last_alert

    try:
        await update_record(key, now)
    except StoreError as exc:
        logger.error(f"❌ Could not persist alert time for {key}: {exc}")
        return last_alert

    logger.info(f"🌧️  Alert recorded for {key} at {now}")
    return now


class Scheduler:
    """
    Owns exactly one background task per subscriber key.

    add() is always a replace: an existing task for the same key is
    cancelled before the new one starts. remove() is idempotent.
    """

    def __init__(
        self,
        check: CheckFn,
        create_record: CreateRecordFn,
        update_record: UpdateRecordFn,
        remove_record: RemoveRecordFn,
        check_every_seconds: float = 300,
        clock: Callable[[], int] = _now,
        jitter: Callable[[], float] = _jitter,
    ):
        self.check_every_seconds = check_every_seconds
        self._check = check
        self._create_record = create_record
        self._update_record = update_record
        self._remove_record = remove_record
        self._clock = clock
        self._jitter = jitter

        self._tasks: Dict[int, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    async def add(self, key: int, location: Location, last_alert: Optional[int] = None):
        """
        Starts (or restarts) the check loop for a subscriber.

        Flow:
        1. Take the registry lock so add/remove for one key run in order
        2. Cancel the old loop for this key, if any (not awaited)
        3. Persist the location, which clears any stored alert time
        4. Start a new loop carrying `last_alert` and register it

        `last_alert` is only passed on startup replay. A user sending a
        new location passes None, which resets the cool-down.
        """

        async with self._lock:
            old_task = self._tasks.pop(key, None)
            if old_task is not None:
                # .cancel() only schedules CancelledError inside the old
                # loop; it stops at its next await without us waiting
                old_task.cancel()
                logger.info(f"🔁 Replacing check loop for {key}")

            await self._create_record(key, location)

            # create_task() returns immediately, the loop runs in the background
            self._tasks[key] = asyncio.create_task(
                self._watch(key, location, last_alert),
                name=f"watch-{key}",
            )

        logger.info(f"✅ Watching {key} at {location.lat:.4f},{location.lon:.4f} | last alert: {last_alert}")

    async def remove(self, key: int):
        """
        Stops watching a subscriber and deletes its record.

        Flow:
        1. Take the registry lock
        2. Cancel and drop the key's loop, if one is running
        3. Delete the record, even when no loop was found

        Step 3 always runs so that a delete which failed earlier can be
        retried. Deleting an absent record does not touch the file.
        """

        async with self._lock:
            task = self._tasks.pop(key, None)
            if task is not None:
                task.cancel()

            await self._remove_record(key)

        if task is not None:
            logger.info(f"🗑️  Stopped watching {key}")

    def is_running(self, key: int) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def active_keys(self) -> List[int]:
        return [key for key, task in self._tasks.items() if not task.done()]

    def __len__(self) -> int:
        return len(self._tasks)

    async def shutdown(self):
        """Cancels every loop and waits for them to finish. Records are kept."""
        async with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(f"🛑 Scheduler stopped ({len(tasks)} loop(s) cancelled)")

    async def _watch(self, key: int, location: Location, last_alert: Optional[int]):
        try:
            while True:
                last_alert = await check_and_alert(
                    key,
                    location,
                    last_alert,
                    self._check,
                    self._update_record,
                    self._clock(),
                )
                await asyncio.sleep(self.check_every_seconds + self._jitter())

        except asyncio.CancelledError:
            # add() replaced us or remove() dropped the key
            logger.info(f"⏱️  Check loop for {key} cancelled")
            return
