"""
procmon - Settings Module
=========================

Usage:
    from procmon.config.settings import Settings

    settings = Settings()
    settings.prepare_environment()   # resolve path fallbacks once
    log_file = settings.LOG_FILE

Every component receives the Settings instance at construction.  Path
fallbacks (e.g. /var/log -> /tmp) are decided in prepare_environment()
and nowhere else.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


DEFAULT_CRON_DIRS = (
    '/etc/cron.d,/etc/cron.hourly,/etc/cron.daily,'
    '/etc/cron.weekly,/etc/cron.monthly'
)


def _env_path(key: str, default: str) -> Path:
    return Path(os.getenv(key, default))


def _env_list(key: str, default: str) -> List[str]:
    raw = os.getenv(key, default)
    return [item.strip() for item in raw.split(',') if item.strip()]


class Settings:
    def __init__(self, env_file: Optional[str] = None):
        self.ENV = os.getenv('PROCMON_ENV', 'production')

        # Explicit file first, then config folder, then working directory
        if env_file is None:
            candidate = Path(__file__).parent / f'.env.{self.ENV}'
            if not candidate.exists():
                candidate = Path.cwd() / '.env'
            env_file = str(candidate)
        if Path(env_file).exists():
            load_dotenv(env_file)

        # Monitored process and endpoint
        self.PROCESS_NAME = os.getenv('PROCMON_PROCESS_NAME', 'test')
        self.MONITORING_URL = os.getenv(
            'PROCMON_MONITORING_URL', 'https://test.com/monitoring/test/api/4'
        )
        self.TIMEOUT = int(os.getenv('PROCMON_TIMEOUT', 10))
        self.NOTIFY_TRANSPORTS = _env_list('PROCMON_NOTIFY_TRANSPORTS', 'requests,wget')

        # Service identity
        self.SERVICE_NAME = os.getenv('PROCMON_SERVICE_NAME', 'monitor-test-process')

        # Files (preferred locations; see prepare_environment)
        self.LOG_FILE = _env_path('PROCMON_LOG_FILE', '/var/log/monitoring.log')
        self.LOCK_FILE = _env_path(
            'PROCMON_LOCK_FILE', f'/var/run/{self.SERVICE_NAME}.lock'
        )
        self.STATUS_FILE = _env_path(
            'PROCMON_STATUS_FILE', f'/var/lib/{self.SERVICE_NAME}/status'
        )
        self.INSTALL_PATH = _env_path(
            'PROCMON_INSTALL_PATH', f'/usr/local/bin/{self.SERVICE_NAME}'
        )
        self.RUNTIME_DIR = _env_path('PROCMON_RUNTIME_DIR', '/tmp')

        # Fallbacks used when the preferred directory is not writable
        self.FALLBACK_LOG_FILE = self.RUNTIME_DIR / 'monitoring.log'
        self.FALLBACK_LOCK_FILE = self.RUNTIME_DIR / f'{self.SERVICE_NAME}.lock'
        self.FALLBACK_STATUS_FILE = self.RUNTIME_DIR / 'test-process-status'
        self.FALLBACK_INSTALL_PATH = self.RUNTIME_DIR / self.SERVICE_NAME

        # Scheduler locations
        self.SYSTEMD_DIR = _env_path('PROCMON_SYSTEMD_DIR', '/etc/systemd/system')
        self.USER_SYSTEMD_DIR = _env_path(
            'PROCMON_USER_SYSTEMD_DIR', str(Path.home() / '.config' / 'systemd' / 'user')
        )
        self.CRON_DIRS = [Path(p) for p in _env_list('PROCMON_CRON_DIRS', DEFAULT_CRON_DIRS)]

        # Timing (seconds)
        self.LOCK_STALE_SECONDS = int(os.getenv('PROCMON_LOCK_STALE_SECONDS', 50))
        self.INTERVAL_SECONDS = int(os.getenv('PROCMON_INTERVAL_SECONDS', 60))

        # Logging
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')

        self.fallbacks_applied: List[str] = []
        self._prepared = False

        self.validate()

    def validate(self):
        """Reject settings that would wedge the cycle lock."""
        if self.TIMEOUT <= 0:
            raise ValueError(f"PROCMON_TIMEOUT must be positive, got {self.TIMEOUT}")
        if self.LOCK_STALE_SECONDS <= 0:
            raise ValueError("PROCMON_LOCK_STALE_SECONDS must be positive")
        # A lock must expire before the next scheduled run
        if self.LOCK_STALE_SECONDS >= self.INTERVAL_SECONDS:
            raise ValueError(
                f"PROCMON_LOCK_STALE_SECONDS ({self.LOCK_STALE_SECONDS}) must be "
                f"less than PROCMON_INTERVAL_SECONDS ({self.INTERVAL_SECONDS})"
            )

    # ------------------------------------------------------------------
    # Path resolution
    # ------------------------------------------------------------------

    @staticmethod
    def _dir_writable(directory: Path) -> bool:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return os.access(directory, os.W_OK)

    def _resolve(self, label: str, preferred: Path, fallback: Path) -> Path:
        if self._dir_writable(preferred.parent):
            return preferred
        fallback.parent.mkdir(parents=True, exist_ok=True)
        self.fallbacks_applied.append(
            f"Cannot use {label} directory {preferred.parent}, using {fallback}"
        )
        return fallback

    def prepare_environment(self) -> 'Settings':
        """Create working directories and settle every path exactly once.

        Later calls are no-ops, so components never see a path change
        mid-run.
        """
        if self._prepared:
            return self

        self.LOG_FILE = self._resolve('log', self.LOG_FILE, self.FALLBACK_LOG_FILE)
        self.LOG_FILE.touch(exist_ok=True)
        try:
            os.chmod(self.LOG_FILE, 0o644)
        except OSError:
            pass

        self.LOCK_FILE = self._resolve('lock', self.LOCK_FILE, self.FALLBACK_LOCK_FILE)
        self.STATUS_FILE = self._resolve('status', self.STATUS_FILE, self.FALLBACK_STATUS_FILE)
        self.INSTALL_PATH = self._resolve(
            'script', self.INSTALL_PATH, self.FALLBACK_INSTALL_PATH
        )

        self._prepared = True
        return self

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def loop_script(self) -> Path:
        return self.RUNTIME_DIR / f'{self.SERVICE_NAME}-init.sh'

    @property
    def stop_script(self) -> Path:
        return self.RUNTIME_DIR / f'{self.SERVICE_NAME}-stop.sh'

    @property
    def loop_pid_file(self) -> Path:
        return self.RUNTIME_DIR / f'{self.SERVICE_NAME}-loop.pid'

    @property
    def is_prepared(self) -> bool:
        return self._prepared

    def locate(self, preferred: Path, fallback: Path) -> Path:
        """Pick the file a read-only command should look at.

        Creates nothing: before prepare_environment() this is the
        preferred path unless only the fallback exists.
        """
        preferred = Path(preferred)
        if self._prepared or preferred.exists() or not Path(fallback).exists():
            return preferred
        return Path(fallback)
