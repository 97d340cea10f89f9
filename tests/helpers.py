"""Shared test doubles and log helpers for the procmon test suite."""

from procmon.monitoring.notifier import NotificationResult, Transport


def messages(caplog, level=None):
    """Log messages captured so far, optionally filtered by level name."""
    return [
        r.getMessage() for r in caplog.records
        if level is None or r.levelname == level
    ]


class MockChecker:
    """Process checker with a scripted answer."""

    def __init__(self, running=False):
        self.running = running
        self.calls = 0

    def is_running(self, process_name=None):
        self.calls += 1
        return self.running

    def check_all(self, process_name=None):
        return {
            'exact_name': self.running,
            'command_line': self.running,
            'process_listing': self.running,
        }


class MockNotifier:
    """Notification client that records calls instead of sending."""

    def __init__(self, success=True, transport='requests'):
        self.success = success
        self.transport = transport
        self.calls = []

    def notify(self, url=None, timeout=None):
        self.calls.append((url, timeout))
        return NotificationResult(
            success=self.success,
            transport=self.transport,
            status_code=200 if self.success else 503,
            error=None if self.success else 'HTTP 503',
        )


class MockTransport(Transport):
    """Transport with scripted availability and outcome."""

    def __init__(self, name, available=True, success=True):
        self.name = name
        self.available = available
        self.success = success
        self.sent = []

    def is_available(self):
        return self.available

    def send(self, url, timeout):
        self.sent.append((url, timeout))
        return NotificationResult(self.success, self.name)
