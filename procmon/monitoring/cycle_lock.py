"""
Advisory cycle lock.

An empty marker file whose mtime is the acquisition time.  A marker
younger than the stale threshold means another cycle is in progress;
an older one is treated as abandoned (crashed cycle) and taken over.

The age check and the takeover are not atomic.  Two overlapping cycles
can both proceed when they race on a stale marker; the cost is a
duplicate log line and notification.
"""

import os
import time
from pathlib import Path
from typing import Optional

from procmon.utils.safe_logging import get_safe_logger

logger = get_safe_logger(__name__)


class CycleLock:
    """File-based mutual exclusion with age-based staleness override."""

    def __init__(self, settings, clock=time.time):
        self.path = Path(settings.LOCK_FILE)
        self.stale_seconds = settings.LOCK_STALE_SECONDS
        self._clock = clock
        self.held = False

    def age_seconds(self) -> Optional[float]:
        """Age of the marker in seconds, or None if there is no marker."""
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return None
        return self._clock() - mtime

    def is_fresh(self) -> bool:
        age = self.age_seconds()
        return age is not None and age < self.stale_seconds

    def _create_exclusive(self) -> bool:
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        os.close(fd)
        return True

    def acquire(self) -> bool:
        """Take the lock unless a fresh marker exists.

        Returns:
            True if this cycle now holds the lock, False if another
            instance appears to be running.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self._create_exclusive():
            self.held = True
            return True

        if self.is_fresh():
            return False

        # Stale marker: take it over and restamp the acquisition time
        logger.debug(f"Overriding stale lock {self.path}", age=self.age_seconds())
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        if not self._create_exclusive():
            # Another cycle recreated it between unlink and create
            return False
        self.held = True
        return True

    def release(self) -> None:
        """Delete the marker. Never raises."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove lock file {self.path}: {e}")
        self.held = False

    def __enter__(self):
        return self.acquire()

    def __exit__(self, *_args):
        if self.held:
            self.release()
