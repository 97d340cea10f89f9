"""
Monitoring Module
=================
Everything a single monitoring cycle needs: process detection, the
persisted liveness state, the cycle lock and the notification client.
"""

from procmon.monitoring.cycle import CycleResult, MonitoringCycle
from procmon.monitoring.cycle_lock import CycleLock
from procmon.monitoring.notifier import NotificationClient, NotificationResult
from procmon.monitoring.process_checker import ProcessLivenessChecker
from procmon.monitoring.status_store import LivenessState, StatusStore

__all__ = [
    'CycleLock',
    'CycleResult',
    'LivenessState',
    'MonitoringCycle',
    'NotificationClient',
    'NotificationResult',
    'ProcessLivenessChecker',
    'StatusStore',
]
