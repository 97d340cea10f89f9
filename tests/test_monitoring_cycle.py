"""
Tests for the Monitoring Cycle
==============================

Covers the lock guard, state transitions, the restart message, the
notification policy and the end-to-end scenarios with a real status
file and log file in a temp directory.
"""

import os
import sys
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from procmon.monitoring.cycle import MonitoringCycle
from procmon.monitoring.status_store import LivenessState, StatusStore
from procmon.utils.safe_logging import configure_logging
from tests.helpers import MockChecker, MockNotifier, messages


RESTART_TEXT = 'was restarted'


def _cycle(settings, checker, notifier, store=None):
    return MonitoringCycle(settings, checker=checker, notifier=notifier, store=store)


def _seed_status(settings, state):
    StatusStore(settings).write(state)


# ============================================================
# Transition / restart message
# ============================================================

class TestRestartDetection:
    """The restart message appears iff previous == STOPPED and current == RUNNING."""

    @pytest.mark.parametrize('previous', [
        LivenessState.RUNNING, LivenessState.STOPPED, LivenessState.UNKNOWN,
    ])
    @pytest.mark.parametrize('running', [True, False])
    def test_restart_message_matrix(self, settings, procmon_caplog, previous, running):
        if previous is not LivenessState.UNKNOWN:
            _seed_status(settings, previous)

        result = _cycle(settings, MockChecker(running), MockNotifier()).execute()

        restarted_logged = any(RESTART_TEXT in m for m in messages(procmon_caplog))
        expected = previous is LivenessState.STOPPED and running
        assert restarted_logged == expected
        assert result.restarted == expected
        assert result.previous is previous

    def test_restart_logged_at_info(self, settings, procmon_caplog):
        _seed_status(settings, LivenessState.STOPPED)

        _cycle(settings, MockChecker(True), MockNotifier()).execute()

        assert 'Process test-worker was restarted' in messages(procmon_caplog, 'INFO')

    def test_first_run_logs_no_history(self, settings, procmon_caplog):
        _cycle(settings, MockChecker(False), MockNotifier()).execute()

        assert 'No previous status found, first run' in messages(procmon_caplog, 'DEBUG')
        debug = messages(procmon_caplog, 'DEBUG')
        assert 'Previous status: unknown, Current status: stopped' in debug


# ============================================================
# Notification policy
# ============================================================

class TestNotificationPolicy:
    """Notify iff RUNNING; status written exactly once either way."""

    def test_running_sends_one_notification(self, settings, mock_notifier):
        result = _cycle(settings, MockChecker(True), mock_notifier).execute()

        assert len(mock_notifier.calls) == 1
        assert mock_notifier.calls[0] == ('https://monitor.example.com/api/4', 10)
        assert result.notified

    def test_stopped_skips_notification(self, settings, mock_notifier, procmon_caplog):
        result = _cycle(settings, MockChecker(False), mock_notifier).execute()

        assert mock_notifier.calls == []
        assert not result.notified
        assert 'Skipping monitoring request (process stopped)' in messages(procmon_caplog, 'INFO')

    @pytest.mark.parametrize('running,success', [
        (True, True), (True, False), (False, True),
    ])
    def test_status_written_exactly_once(self, settings, running, success):
        store = MagicMock(wraps=StatusStore(settings))

        _cycle(settings, MockChecker(running), MockNotifier(success), store=store).execute()

        assert store.write.call_count == 1
        expected = LivenessState.RUNNING if running else LivenessState.STOPPED
        store.write.assert_called_once_with(expected)

    def test_failed_notification_is_warning_not_error(self, settings, procmon_caplog):
        code = _cycle(settings, MockChecker(True), MockNotifier(success=False)).run()

        assert code == 0
        assert 'Monitoring server may be unreachable' in messages(procmon_caplog, 'WARNING')
        assert messages(procmon_caplog, 'ERROR') == []
        assert StatusStore(settings).read() is LivenessState.RUNNING
        assert not Path(settings.LOCK_FILE).exists()

    def test_notifier_exception_still_completes(self, settings, procmon_caplog):
        notifier = MagicMock()
        notifier.notify.side_effect = RuntimeError('boom')

        code = _cycle(settings, MockChecker(True), notifier).run()

        assert code == 0
        assert StatusStore(settings).read() is LivenessState.RUNNING
        assert not Path(settings.LOCK_FILE).exists()
        assert any('boom' in m for m in messages(procmon_caplog, 'WARNING'))


# ============================================================
# Lock guard
# ============================================================

class TestLockGuard:
    """Fresh lock aborts the cycle; stale lock is taken over."""

    def test_fresh_lock_skips_everything(self, settings, procmon_caplog):
        lock_file = Path(settings.LOCK_FILE)
        lock_file.touch()
        checker = MockChecker(True)
        notifier = MockNotifier()
        store = MagicMock(wraps=StatusStore(settings))

        cycle = _cycle(settings, checker, notifier, store=store)
        code = cycle.run()

        assert code == 0
        assert cycle.last_result.skipped
        assert checker.calls == 0
        assert notifier.calls == []
        store.write.assert_not_called()
        assert not Path(settings.STATUS_FILE).exists()
        assert lock_file.exists()
        assert 'Another instance may be running' in messages(procmon_caplog, 'WARNING')

    def test_stale_lock_is_overridden(self, settings):
        lock_file = Path(settings.LOCK_FILE)
        lock_file.touch()
        old = time.time() - 120
        os.utime(lock_file, (old, old))
        checker = MockChecker(False)

        code = _cycle(settings, checker, MockNotifier()).run()

        assert code == 0
        assert checker.calls == 1
        assert StatusStore(settings).read() is LivenessState.STOPPED
        assert not lock_file.exists()

    def test_lock_released_after_cycle(self, settings):
        _cycle(settings, MockChecker(True), MockNotifier(success=False)).run()

        assert not Path(settings.LOCK_FILE).exists()


# ============================================================
# Idempotence
# ============================================================

class TestBackToBack:

    def test_two_absent_cycles(self, settings, procmon_caplog):
        store = StatusStore(settings)

        _cycle(settings, MockChecker(False), MockNotifier()).run()
        assert store.read() is LivenessState.STOPPED

        _cycle(settings, MockChecker(False), MockNotifier()).run()
        assert store.read() is LivenessState.STOPPED

        assert not any(RESTART_TEXT in m for m in messages(procmon_caplog))


# ============================================================
# End-to-end scenarios (real log file)
# ============================================================

class TestEndToEnd:

    def _log_lines(self, settings):
        return Path(settings.LOG_FILE).read_text(encoding='utf-8').splitlines()

    def test_first_run_with_process_absent(self, settings, mock_notifier):
        configure_logging(settings.LOG_FILE, 'DEBUG', console=False)

        code = _cycle(settings, MockChecker(False), mock_notifier).run()

        assert code == 0
        assert Path(settings.STATUS_FILE).read_text(encoding='utf-8').strip() == 'stopped'
        assert mock_notifier.calls == []

        lines = self._log_lines(settings)
        not_running = [l for l in lines if 'INFO:' in l and 'not running' in l]
        assert len(not_running) == 1
        assert not any(RESTART_TEXT in l for l in lines)
        assert all(l.startswith('[') for l in lines)

    def test_stopped_then_running(self, settings, mock_notifier):
        Path(settings.STATUS_FILE).write_text('stopped\n', encoding='utf-8')
        configure_logging(settings.LOG_FILE, 'DEBUG', console=False)

        code = _cycle(settings, MockChecker(True), mock_notifier).run()

        assert code == 0
        assert len(mock_notifier.calls) == 1
        assert Path(settings.STATUS_FILE).read_text(encoding='utf-8').strip() == 'running'
        lines = self._log_lines(settings)
        assert any('INFO: Process test-worker was restarted' in l for l in lines)
