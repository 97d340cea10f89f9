"""
Background Loop
===============
Scheduler substitute for hosts without systemd or cron: a detached
process that runs one monitoring cycle immediately and then every
INTERVAL_SECONDS, forever.

Started by the installer's background strategy (`procmon loop`) and
torn down with `procmon stop`, which prefers the PID file and only
falls back to matching the loop's command line.
"""

import os
import time
from typing import Callable, Optional

import psutil
import schedule

from procmon.monitoring.cycle import MonitoringCycle
from procmon.utils.safe_logging import get_safe_logger

logger = get_safe_logger(__name__)

LOOP_SIGNATURE = 'procmon loop'
TERMINATE_GRACE_SECONDS = 5


def _run_cycle(settings, cycle_factory: Callable) -> None:
    try:
        cycle_factory(settings).run()
    except Exception as e:
        # Keep looping; the next tick gets a fresh cycle
        logger.warning(f"Background cycle failed: {e}")


def run_loop(settings, cycle_factory: Callable = MonitoringCycle,
             max_runs: Optional[int] = None, sleep: Callable = time.sleep,
             scheduler: Optional[schedule.Scheduler] = None) -> int:
    """Run monitoring cycles on a fixed interval.

    Args:
        settings: Prepared Settings instance
        cycle_factory: Builds a cycle from settings (MonitoringCycle)
        max_runs: Stop after this many cycles; None means forever
        sleep: Sleep function between scheduler polls
        scheduler: schedule.Scheduler to use (a private one by default)

    Returns:
        Number of cycles run
    """
    scheduler = scheduler or schedule.Scheduler()
    runs = 0

    def job():
        nonlocal runs
        _run_cycle(settings, cycle_factory)
        runs += 1

    settings.loop_pid_file.write_text(f"{os.getpid()}\n", encoding='utf-8')
    logger.info(f"Background loop started (every {settings.INTERVAL_SECONDS}s)", pid=os.getpid())

    scheduler.every(settings.INTERVAL_SECONDS).seconds.do(job)
    job()

    while max_runs is None or runs < max_runs:
        scheduler.run_pending()
        sleep(1)

    return runs


def _read_pid(settings) -> Optional[int]:
    try:
        return int(settings.loop_pid_file.read_text(encoding='utf-8').strip())
    except (OSError, ValueError):
        return None


def _is_loop_process(proc: psutil.Process, settings) -> bool:
    try:
        cmdline = ' '.join(proc.cmdline())
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False
    return LOOP_SIGNATURE in cmdline or str(settings.loop_script) in cmdline


def _terminate(proc: psutil.Process) -> bool:
    try:
        proc.terminate()
        try:
            proc.wait(timeout=TERMINATE_GRACE_SECONDS)
        except psutil.TimeoutExpired:
            proc.kill()
        return True
    except psutil.NoSuchProcess:
        return True
    except psutil.AccessDenied as e:
        logger.warning(f"Not allowed to stop background loop pid {proc.pid}: {e}")
        return False


def stop_loop(settings) -> int:
    """Stop the background loop.

    Returns:
        Number of loop processes stopped
    """
    stopped = 0
    own_pid = os.getpid()

    pid = _read_pid(settings)
    if pid is not None and pid != own_pid:
        try:
            proc = psutil.Process(pid)
            if _is_loop_process(proc, settings) and _terminate(proc):
                stopped += 1
        except psutil.NoSuchProcess:
            logger.debug(f"Recorded loop pid {pid} is gone")

    if stopped == 0:
        # No usable PID file: match the loop's command line
        for proc in psutil.process_iter(['pid']):
            if proc.info['pid'] == own_pid:
                continue
            if _is_loop_process(proc, settings) and _terminate(proc):
                stopped += 1

    try:
        settings.loop_pid_file.unlink()
    except FileNotFoundError:
        pass

    if stopped:
        logger.info(f"Stopped {stopped} background loop process(es)")
    else:
        logger.info("No background loop running")
    return stopped
