"""
Liveness state persistence.

The status record is a single-line token file ("running" / "stopped")
holding the outcome of the most recent completed cycle.
"""

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional

from procmon.utils.safe_logging import get_safe_logger

logger = get_safe_logger(__name__)


class LivenessState(Enum):
    """Observed state of the monitored process"""
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"  # no history yet; never persisted

    @classmethod
    def from_token(cls, token: str) -> 'LivenessState':
        try:
            return cls(token.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    def __str__(self):
        return self.value


class StatusStore:
    """Single mutable slot holding the last observed LivenessState."""

    def __init__(self, settings, path: Optional[Path] = None):
        self.path = Path(path or settings.STATUS_FILE)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> LivenessState:
        """Return the last persisted state, UNKNOWN if there is none."""
        try:
            token = self.path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return LivenessState.UNKNOWN
        except OSError as e:
            logger.warning(f"Could not read status file {self.path}: {e}")
            return LivenessState.UNKNOWN
        return LivenessState.from_token(token)

    def write(self, state: LivenessState) -> None:
        """Atomically replace the status record.

        Writes a temp file in the same directory and renames it over the
        record, so a concurrent reader sees either the old or the new
        token and never a partial one.
        """
        if state is LivenessState.UNKNOWN:
            raise ValueError("UNKNOWN is not a persistable liveness state")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f'.{self.path.name}.', suffix='.tmp', dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                fh.write(f"{state.value}\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
