"""
Monitoring Notifier
===================
Best-effort status report to the monitoring endpoint.

Transports are tried in configured order and the first one that is
*available* on this host is used; a failing transport does not hand
over to the next one.  When no transport is available the report is
treated as sent ("simulated") so an environment limitation never
blocks the monitoring cycle.

Each call makes exactly one attempt: no retries, no backoff.
"""

import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional

import requests as http_requests  # renamed to avoid clashing with transport names

from procmon.utils.safe_logging import get_safe_logger

logger = get_safe_logger(__name__)

SUCCESS_STATUS_CODES = (200, 201)


@dataclass
class NotificationResult:
    """Outcome of one notification attempt"""
    success: bool
    transport: str
    status_code: Optional[int] = None
    error: Optional[str] = None

    def __str__(self):
        if self.status_code is not None:
            return f"{self.transport} (HTTP {self.status_code})"
        return self.transport


class Transport:
    """One way of delivering the monitoring request."""

    name = 'transport'

    def is_available(self) -> bool:
        raise NotImplementedError

    def send(self, url: str, timeout: int) -> NotificationResult:
        raise NotImplementedError


class RequestsTransport(Transport):
    """POST with a JSON content type; success on HTTP 200/201."""

    name = 'requests'

    def is_available(self) -> bool:
        return True

    def send(self, url: str, timeout: int) -> NotificationResult:
        try:
            resp = http_requests.post(
                url,
                headers={'Content-Type': 'application/json'},
                timeout=(timeout, timeout),
            )
        except http_requests.exceptions.Timeout:
            return NotificationResult(False, self.name, error='Request timed out')
        except http_requests.exceptions.RequestException as exc:
            return NotificationResult(False, self.name, error=str(exc))

        return NotificationResult(
            success=resp.status_code in SUCCESS_STATUS_CODES,
            transport=self.name,
            status_code=resp.status_code,
            error=None if resp.status_code in SUCCESS_STATUS_CODES else f'HTTP {resp.status_code}',
        )


class WgetTransport(Transport):
    """GET through the wget binary, single try; success on exit status 0."""

    name = 'wget'

    def __init__(self, binary: str = 'wget'):
        self.binary = binary

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def send(self, url: str, timeout: int) -> NotificationResult:
        cmd = [
            self.binary, '-q', '-O', '/dev/null',
            f'--timeout={timeout}', '--tries=1', url,
        ]
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=timeout + 5,
            )
        except subprocess.TimeoutExpired:
            return NotificationResult(False, self.name, error='Request timed out')
        except OSError as exc:
            return NotificationResult(False, self.name, error=str(exc))

        if result.returncode == 0:
            return NotificationResult(True, self.name)
        return NotificationResult(False, self.name, error=f'wget exit code {result.returncode}')


TRANSPORTS = {
    RequestsTransport.name: RequestsTransport,
    WgetTransport.name: WgetTransport,
}


def build_transports(names: List[str]) -> List[Transport]:
    transports = []
    for name in names:
        factory = TRANSPORTS.get(name.lower())
        if factory is None:
            logger.warning(f"Ignoring unknown notification transport: {name}")
            continue
        transports.append(factory())
    return transports


class NotificationClient:
    """Sends the monitoring request through the best available transport.

    Args:
        settings: Settings instance (MONITORING_URL, TIMEOUT,
                  NOTIFY_TRANSPORTS).
        transports: Explicit transport list, overrides the settings.
    """

    def __init__(self, settings, transports: Optional[List[Transport]] = None):
        self.url = settings.MONITORING_URL
        self.timeout = settings.TIMEOUT
        if transports is None:
            transports = build_transports(settings.NOTIFY_TRANSPORTS)
        self.transports = transports

    def select_transport(self) -> Optional[Transport]:
        for transport in self.transports:
            if transport.is_available():
                return transport
        return None

    def notify(self, url: Optional[str] = None, timeout: Optional[int] = None) -> NotificationResult:
        url = url or self.url
        timeout = timeout or self.timeout

        transport = self.select_transport()
        if transport is None:
            logger.info(f"Monitoring request to {url} (simulated - no http client)")
            return NotificationResult(True, 'simulated')

        result = transport.send(url, timeout)
        if result.success:
            logger.info(f"Monitoring request to {url} successful ({result})")
        else:
            logger.warning(f"Monitoring request failed ({result})", error=result.error)
        return result
