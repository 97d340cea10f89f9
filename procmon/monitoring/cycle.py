"""
Monitoring Cycle
================
One invocation of the monitor, normally fired once a minute by the
installed scheduler:

    Idle -> Locked -> Checked -> Notified -> Done

1. Take the cycle lock.  A fresh lock means another instance is running:
   log a warning and return 0 without touching anything else.
2. Check the process, read the previous state, log the transition.
3. If the process is running, send one monitoring request.  A failed
   request is a warning; the cycle still completes.
4. Persist the current state and release the lock, whatever happened
   in steps 2-3.
"""

from dataclasses import dataclass
from typing import Optional

from procmon.monitoring.cycle_lock import CycleLock
from procmon.monitoring.notifier import NotificationClient, NotificationResult
from procmon.monitoring.process_checker import ProcessLivenessChecker
from procmon.monitoring.status_store import LivenessState, StatusStore
from procmon.utils.safe_logging import get_safe_logger

logger = get_safe_logger(__name__)

EXIT_OK = 0


@dataclass
class CycleResult:
    """What a single cycle observed and did"""
    skipped: bool = False
    previous: LivenessState = LivenessState.UNKNOWN
    current: Optional[LivenessState] = None
    restarted: bool = False
    notification: Optional[NotificationResult] = None
    exit_code: int = EXIT_OK

    @property
    def notified(self) -> bool:
        return self.notification is not None


class MonitoringCycle:
    """Runs one liveness check and reports it.

    Collaborators default to the ones described by *settings*; tests
    pass their own.
    """

    def __init__(self, settings, checker=None, store=None, notifier=None, lock=None):
        self.settings = settings
        self.process_name = settings.PROCESS_NAME
        self.url = settings.MONITORING_URL
        self.checker = checker or ProcessLivenessChecker(settings)
        self.store = store or StatusStore(settings)
        self.notifier = notifier or NotificationClient(settings)
        self.lock = lock or CycleLock(settings)
        self.last_result: Optional[CycleResult] = None

    def run(self) -> int:
        """Execute the cycle and return the process exit code."""
        self.last_result = self.execute()
        return self.last_result.exit_code

    def execute(self) -> CycleResult:
        result = CycleResult()

        if not self.lock.acquire():
            logger.warning("Another instance may be running")
            result.skipped = True
            return result

        try:
            logger.debug(f"Monitoring check started for process: {self.process_name}")
            try:
                self._check(result)
                self._report(result)
            except Exception as e:
                logger.warning(f"Monitoring check degraded: {e}")

            if result.current is None:
                result.current = LivenessState.STOPPED
            try:
                self.store.write(result.current)
            except OSError as e:
                logger.warning(f"Could not persist status: {e}")
        finally:
            self.lock.release()

        logger.debug("Monitoring check completed")
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check(self, result: CycleResult) -> None:
        if self.checker.is_running(self.process_name):
            current = LivenessState.RUNNING
            logger.info(f"Process {self.process_name} is running")
        else:
            current = LivenessState.STOPPED
            logger.info(f"Process {self.process_name} is not running")
        result.current = current

        previous = self.store.read()
        if previous is LivenessState.UNKNOWN and not self.store.exists():
            logger.debug("No previous status found, first run")
        result.previous = previous

        logger.debug(f"Previous status: {previous}, Current status: {current}")

        if previous is LivenessState.STOPPED and current is LivenessState.RUNNING:
            result.restarted = True
            logger.info(f"Process {self.process_name} was restarted")

    def _report(self, result: CycleResult) -> None:
        if result.current is not LivenessState.RUNNING:
            logger.info("Skipping monitoring request (process stopped)")
            return

        logger.info(f"Sending monitoring request to {self.url}")
        result.notification = self.notifier.notify(self.url, self.settings.TIMEOUT)
        if not result.notification.success:
            logger.warning("Monitoring server may be unreachable")
