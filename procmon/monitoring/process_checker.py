"""
Process liveness detection.

Three independent strategies are OR-combined.  A process launched as a
bare binary shows up by name; one started through a wrapper or
interpreter ("python worker.py", "sh -c test") only shows up in its
command line; the `ps` listing covers hosts where psutil cannot read
the process table.  Substring matches can hit unrelated processes that
share the name; that is accepted in exchange for recall.
"""

import os
import subprocess
from typing import Callable, Dict, List, Optional, Tuple

import psutil

from procmon.utils.safe_logging import get_safe_logger

logger = get_safe_logger(__name__)


class ProcessLivenessChecker:
    """Answers "is <process_name> running right now?"."""

    def __init__(self, settings, ps_command: Optional[List[str]] = None):
        self.process_name = settings.PROCESS_NAME
        self.ps_command = ps_command or ['ps', 'aux']
        self._own_pids = {os.getpid(), os.getppid()}

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def exact_name(self, process_name: str) -> bool:
        """Process table entry whose name equals process_name."""
        try:
            for proc in psutil.process_iter(['pid', 'name']):
                try:
                    if proc.info['pid'] in self._own_pids:
                        continue
                    if proc.info.get('name') == process_name:
                        return True
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
        except (psutil.Error, OSError) as e:
            logger.debug(f"Exact-name scan failed: {e}")
        return False

    def command_line(self, process_name: str) -> bool:
        """Process whose full command line contains process_name."""
        try:
            for proc in psutil.process_iter(['pid', 'cmdline']):
                try:
                    if proc.info['pid'] in self._own_pids:
                        continue
                    cmdline = proc.info.get('cmdline') or []
                    if process_name in ' '.join(str(arg) for arg in cmdline):
                        return True
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
        except (psutil.Error, OSError) as e:
            logger.debug(f"Command-line scan failed: {e}")
        return False

    def process_listing(self, process_name: str) -> bool:
        """`ps aux` output filtered by substring, skipping grep and ourselves."""
        try:
            result = subprocess.run(
                self.ps_command,
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Process listing unavailable: {e}")
            return False

        if result.returncode != 0:
            return False

        for line in result.stdout.splitlines()[1:]:
            if process_name not in line or 'grep' in line:
                continue
            fields = line.split(None, 2)
            if len(fields) > 1 and fields[1].isdigit() and int(fields[1]) in self._own_pids:
                continue
            return True
        return False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def strategies(self) -> List[Tuple[str, Callable[[str], bool]]]:
        return [
            ('exact_name', self.exact_name),
            ('command_line', self.command_line),
            ('process_listing', self.process_listing),
        ]

    def is_running(self, process_name: Optional[str] = None) -> bool:
        """True if any strategy finds the process (first hit wins)."""
        name = process_name or self.process_name
        for label, strategy in self.strategies():
            if strategy(name):
                logger.debug(f"Process {name} detected", strategy=label)
                return True
        return False

    def check_all(self, process_name: Optional[str] = None) -> Dict[str, bool]:
        """Run every strategy without short-circuiting (diagnostics)."""
        name = process_name or self.process_name
        return {label: strategy(name) for label, strategy in self.strategies()}
