"""Background purge of expired trash.

The reaper periodically looks for trash roots whose retention window
has elapsed and permanently deletes them through the same
``permanent_delete_item`` path interactive callers use.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Final, final

from django.conf import settings
from django.db import close_old_connections
from django.utils import timezone

from server.apps.drive.exceptions import ItemNotFoundError
from server.apps.drive.logic.trash_operations import (
    get_retention_days,
    permanent_delete_item,
    trash_roots,
)
from server.apps.drive.models import Item

_DEFAULT_INTERVAL_HOURS: Final = 24
_DEFAULT_BATCH_SIZE: Final = 1000

PurgeFunc = Callable[[Any, int], Any]

logger = logging.getLogger(__name__)


def get_sweep_interval() -> timedelta:
    """Get time between two sweeps.

    Returns:
        Interval from settings or default of 24 hours.
    """
    hours = getattr(
        settings,
        'DRIVE_SWEEP_INTERVAL_HOURS',
        _DEFAULT_INTERVAL_HOURS,
    )
    return timedelta(hours=hours)


def get_batch_size() -> int:
    """Get max trash roots purged per sweep.

    Returns:
        Batch size from settings or default of 1000.
    """
    return getattr(settings, 'DRIVE_REAPER_BATCH_SIZE', _DEFAULT_BATCH_SIZE)


@dataclass(frozen=True, slots=True)
class ReapResult:
    """Outcome of a single sweep."""

    purged: int = 0
    skipped: int = 0
    failed: int = 0
    released_bytes: int = 0


@final
class TrashReaper:
    """Periodically purges trash older than the retention window.

    The reaper never raises into its caller: failures are logged and
    the affected item stays in trash, so it is picked up again by the
    next sweep.
    """

    def __init__(
        self,
        purge: PurgeFunc = permanent_delete_item,
        retention_days: int | None = None,
        interval: timedelta | None = None,
        batch_size: int | None = None,
    ) -> None:
        """Initialize the reaper.

        Args:
            purge: Function called as ``purge(owner, item_id)``.
            retention_days: Retention window, defaults to settings.
            interval: Time between sweeps, defaults to settings.
            batch_size: Max items per sweep, defaults to settings.
        """
        self.purge = purge
        self.retention_days = (
            get_retention_days() if retention_days is None else retention_days
        )
        self.interval = get_sweep_interval() if interval is None else interval
        self.batch_size = get_batch_size() if batch_size is None else batch_size
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        # Items whose purge failed, retried after fresh candidates
        self._failed_ids: set[int] = set()

    @property
    def is_running(self) -> bool:
        """Whether the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def cutoff(self, now: datetime | None = None) -> datetime:
        """Latest deletion time that is old enough to purge."""
        now = now or timezone.now()
        return now - timedelta(days=self.retention_days)

    def find_expired(self, now: datetime | None = None) -> list[Item]:
        """Find trash roots past the retention window, oldest first.

        Items nested in a trashed folder are never returned on their
        own, the folder's purge covers them. Items that failed in an
        earlier sweep come after every other candidate, so a batch full
        of failing items cannot starve newer expired trash.

        Args:
            now: Reference time, defaults to now.

        Returns:
            At most ``batch_size`` items.
        """
        expired = trash_roots().filter(
            deleted_at__lte=self.cutoff(now),
        ).select_related('owner').order_by('deleted_at', 'pk')

        candidates = list(
            expired.exclude(pk__in=self._failed_ids)[:self.batch_size],
        )
        room = self.batch_size - len(candidates)
        if room > 0 and self._failed_ids:
            candidates.extend(
                expired.filter(pk__in=self._failed_ids)[:room],
            )
        return candidates

    def run_once(self, now: datetime | None = None) -> ReapResult:
        """Run one sweep.

        Stops between items when a stop was requested, an item purge
        that already started always completes.

        Args:
            now: Reference time, defaults to now.

        Returns:
            Counts of purged, skipped and failed items.
        """
        cutoff = self.cutoff(now)
        logger.info('Starting trash sweep for items deleted before %s', cutoff)

        purged = 0
        skipped = 0
        failed = 0
        released_bytes = 0

        for item in self.find_expired(now):
            if self._stop_event.is_set():
                logger.info('Trash sweep interrupted by shutdown')
                break
            try:
                released = self.purge(item.owner, item.pk)
            except ItemNotFoundError:
                # Restored or purged by someone else since the scan
                logger.info('Trash item no longer purgeable: %d', item.pk)
                self._failed_ids.discard(item.pk)
                skipped += 1
            except Exception:
                logger.exception(
                    'Failed to purge item from trash: %d',
                    item.pk,
                )
                self._failed_ids.add(item.pk)
                failed += 1
            else:
                self._failed_ids.discard(item.pk)
                purged += 1
                released_bytes += released or 0
                logger.info(
                    'Purged item from trash: %s (ID: %d, owner: %s)',
                    item.name,
                    item.pk,
                    item.owner.username,
                )

        result = ReapResult(
            purged=purged,
            skipped=skipped,
            failed=failed,
            released_bytes=released_bytes,
        )
        if purged or failed:
            logger.info(
                'Trash sweep done: %d purged, %d skipped, %d failed',
                purged,
                skipped,
                failed,
            )
        else:
            logger.info('No old deleted items to clean up')
        return result

    def run_forever(self) -> None:
        """Sweep until a stop is requested.

        The wait between sweeps returns as soon as ``request_stop`` is
        called.
        """
        logger.info(
            'Trash reaper is starting (interval: %s, retention: %d days)',
            self.interval,
            self.retention_days,
        )

        while not self._stop_event.is_set():
            close_old_connections()
            try:
                self.run_once()
            except Exception:
                logger.exception('Error occurred while cleaning up old trash items')
            finally:
                close_old_connections()

            if self._stop_event.wait(self.interval.total_seconds()):
                break

        logger.info('Trash reaper is stopping')

    def start(self) -> None:
        """Start sweeping in a background thread."""
        if self.is_running:
            logger.warning('Trash reaper already running')
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            name='trash-reaper',
            daemon=True,
        )
        self._thread.start()

    def request_stop(self) -> None:
        """Ask the reaper to stop without waiting for it."""
        self._stop_event.set()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the reaper and wait for the background thread.

        Args:
            timeout: Max seconds to wait for the current item to finish.
        """
        self.request_stop()
        if self._thread is None:
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning('Trash reaper did not stop within %s seconds', timeout)
        else:
            self._thread = None
