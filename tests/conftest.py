"""
Pytest configuration and fixtures for procmon testing.

This module provides:
- Settings pointing every path at a temp directory
- Mock process checker and notification client
- Log capture helpers
"""

import logging
import os
import sys

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from procmon.config.settings import Settings
from procmon.utils.safe_logging import reset_logging
from tests.helpers import MockChecker, MockNotifier


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture
def env_paths(tmp_path, monkeypatch):
    """
    Point every PROCMON_* path at a temp directory.

    Returns the dict of directories so tests can inspect them.
    """
    paths = {
        'root': tmp_path,
        'log_dir': tmp_path / 'log',
        'run_dir': tmp_path / 'run',
        'lib_dir': tmp_path / 'lib',
        'bin_dir': tmp_path / 'bin',
        'runtime_dir': tmp_path / 'runtime',
        'systemd_dir': tmp_path / 'systemd',
        'user_systemd_dir': tmp_path / 'user-systemd',
    }
    paths['runtime_dir'].mkdir()

    monkeypatch.setenv('PROCMON_PROCESS_NAME', 'test-worker')
    monkeypatch.setenv('PROCMON_MONITORING_URL', 'https://monitor.example.com/api/4')
    monkeypatch.setenv('PROCMON_TIMEOUT', '10')
    monkeypatch.setenv('PROCMON_SERVICE_NAME', 'monitor-test-process')
    monkeypatch.setenv('PROCMON_LOG_FILE', str(paths['log_dir'] / 'monitoring.log'))
    monkeypatch.setenv('PROCMON_LOCK_FILE', str(paths['run_dir'] / 'monitor.lock'))
    monkeypatch.setenv('PROCMON_STATUS_FILE', str(paths['lib_dir'] / 'status'))
    monkeypatch.setenv('PROCMON_INSTALL_PATH', str(paths['bin_dir'] / 'monitor-test-process'))
    monkeypatch.setenv('PROCMON_RUNTIME_DIR', str(paths['runtime_dir']))
    monkeypatch.setenv('PROCMON_SYSTEMD_DIR', str(paths['systemd_dir']))
    monkeypatch.setenv('PROCMON_USER_SYSTEMD_DIR', str(paths['user_systemd_dir']))
    monkeypatch.setenv('PROCMON_CRON_DIRS', str(tmp_path / 'no-cron.d'))
    monkeypatch.delenv('PROCMON_LOCK_STALE_SECONDS', raising=False)
    monkeypatch.delenv('PROCMON_INTERVAL_SECONDS', raising=False)
    monkeypatch.delenv('PROCMON_NOTIFY_TRANSPORTS', raising=False)
    return paths


@pytest.fixture
def settings(env_paths):
    """Prepared Settings instance backed by temp paths (no .env file)."""
    s = Settings(env_file=str(env_paths['root'] / 'absent.env'))
    s.prepare_environment()
    return s


# ============================================================
# LOGGING FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def clean_procmon_logging():
    """Detach handlers added by configure_logging() after every test."""
    yield
    reset_logging()
    logging.getLogger('procmon').setLevel(logging.NOTSET)


@pytest.fixture
def procmon_caplog(caplog):
    """caplog capturing DEBUG and above from the procmon logger tree."""
    caplog.set_level(logging.DEBUG, logger='procmon')
    return caplog


# ============================================================
# MOCK COLLABORATORS
# ============================================================

@pytest.fixture
def mock_checker():
    """Checker reporting the process as absent (flip .running in tests)."""
    return MockChecker(running=False)


@pytest.fixture
def mock_notifier():
    """Notifier that always succeeds."""
    return MockNotifier(success=True)
