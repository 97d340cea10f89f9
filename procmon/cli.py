"""
Universal Process Monitor
=========================

Usage:
    procmon install    # Auto-install on any Linux system (root)
    procmon run        # Run monitoring once
    procmon test       # Diagnostics, then one monitoring run
    procmon status     # Show current status (read-only)
    procmon loop       # Foreground loop used by the background scheduler
    procmon stop       # Stop the background loop
    procmon help       # Show this help

Dashed spellings (--install, --run, ...) are accepted too.

Features:
    - Automatic fallback across systemd, cron and a background loop
    - HTTP monitoring with transport fallbacks
    - Configuration through PROCMON_* environment variables or .env
"""

import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from procmon.automation.background_loop import run_loop, stop_loop
from procmon.automation.host import detect_system, is_root
from procmon.automation.installer import SchedulingInstaller, write_launcher
from procmon.config.settings import Settings
from procmon.monitoring.cycle import MonitoringCycle
from procmon.monitoring.process_checker import ProcessLivenessChecker
from procmon.monitoring.status_store import StatusStore
from procmon.utils.safe_logging import configure_logging, get_safe_logger

logger = get_safe_logger('procmon.cli')

EXIT_OK = 0
EXIT_ERROR = 1

RECENT_LINES = 10


def _tail(path: Path, count: int = RECENT_LINES) -> List[str]:
    with open(path, 'r', encoding='utf-8', errors='replace') as fh:
        return [line.rstrip('\n') for line in fh.readlines()[-count:]]


def _mark(found: bool, yes: str = 'Found', no: str = 'Not found') -> str:
    return f"✓ {yes}" if found else f"✗ {no}"


def _start(settings: Settings, console: bool = True) -> Settings:
    """Resolve paths once and attach the log handlers."""
    settings.prepare_environment()
    configure_logging(settings.LOG_FILE, settings.LOG_LEVEL, console=console)
    for note in settings.fallbacks_applied:
        logger.warning(note)
    return settings


def _print_recent_entries(log_file: Path) -> None:
    if not log_file.exists():
        print("Log file does not exist")
        return
    lines = _tail(log_file)
    if not lines:
        print("No entries yet (file exists but empty)")
        return
    print("Recent log entries:")
    for line in lines:
        print(line)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

def install_monitoring(settings: Settings) -> int:
    if not is_root():
        logger.error("Please run as root")
        return EXIT_ERROR

    logger.info("Preparing environment...")
    _start(settings)
    logger.info("Environment prepared")

    write_launcher(settings)
    strategy = SchedulingInstaller(settings).install()
    if strategy is None:
        logger.error("No scheduler could be installed")
        return EXIT_ERROR

    logger.info(f"Installation completed successfully! (scheduler: {strategy})")
    print("")
    print("Next steps:")
    print(f"  - Test: {settings.INSTALL_PATH} test")
    print(f"  - Check status: {settings.INSTALL_PATH} status")
    print(f"  - View logs: tail -f {settings.LOG_FILE}")
    print("")
    print("The monitor will run every minute to check process status.")
    return EXIT_OK


def run_monitoring(settings: Settings) -> int:
    _start(settings)
    return MonitoringCycle(settings).run()


def test_monitoring(settings: Settings) -> int:
    _start(settings, console=False)

    print("=== Testing Monitoring System ===")
    print("")
    print(f"System: {detect_system()}")
    print(f"Process: {settings.PROCESS_NAME}")

    print("Process checking methods:")
    checker = ProcessLivenessChecker(settings)
    for index, (label, found) in enumerate(checker.check_all().items(), start=1):
        print(f"{index}. {label}: {_mark(found)}")

    print("")
    print(f"Log file: {settings.LOG_FILE}")
    print("")
    _print_recent_entries(settings.LOG_FILE)

    print("")
    print("Installation status:")
    if Path(settings.INSTALL_PATH).exists():
        print(f"Script: ✓ Installed at {settings.INSTALL_PATH}")
    else:
        print("Script: ✗ Not installed")

    print("")
    print("Manual test:")
    print("Starting manual monitoring run...")
    code = MonitoringCycle(settings, checker=checker).run()
    print("Manual run completed. Check log file for details.")
    return code


def show_status(settings: Settings) -> int:
    # Read-only: look at whichever files exist, create nothing
    log_file = settings.locate(settings.LOG_FILE, settings.FALLBACK_LOG_FILE)
    status_file = settings.locate(settings.STATUS_FILE, settings.FALLBACK_STATUS_FILE)

    print("=== Monitoring Status ===")
    print("")
    print(f"Process: {settings.PROCESS_NAME}")
    running = ProcessLivenessChecker(settings).is_running()
    print(f"Status: {_mark(running, 'Running', 'Not running')}")
    print(f"Last recorded: {StatusStore(settings, path=status_file).read()}")

    print("")
    print(f"Log file: {log_file}")
    if not log_file.exists():
        print("Log file does not exist")
        return EXIT_OK

    stat = log_file.stat()
    with open(log_file, 'r', encoding='utf-8', errors='replace') as fh:
        line_count = sum(1 for _ in fh)
    modified = datetime.fromtimestamp(stat.st_mtime).strftime('%Y-%m-%d %H:%M:%S')
    print(f"Log size: {line_count} lines")
    print(f"Last modified: {modified}")
    print("")
    _print_recent_entries(log_file)
    return EXIT_OK


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """Dispatch a command and return the exit code."""
    argv = sys.argv[1:] if argv is None else argv
    command = argv[0].lower().lstrip('-') if argv else 'help'

    if command in ('help', 'h', ''):
        print(__doc__)
        return EXIT_OK

    try:
        settings = settings or Settings()

        if command == 'install':
            return install_monitoring(settings)
        elif command == 'run':
            return run_monitoring(settings)
        elif command == 'test':
            return test_monitoring(settings)
        elif command == 'status':
            return show_status(settings)
        elif command == 'loop':
            _start(settings, console=False)
            run_loop(settings)
            return EXIT_OK
        elif command == 'stop':
            _start(settings)
            stop_loop(settings)
            return EXIT_OK
        else:
            configure_logging(console=True)
            logger.error(f"Unknown command: {argv[0]}")
            print(__doc__)
            return EXIT_ERROR

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return EXIT_OK
    except Exception as e:
        print(f"\nError: {str(e)}")
        traceback.print_exc()
        return EXIT_ERROR
