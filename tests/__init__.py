"""
procmon Test Suite

Test Categories:
- Monitoring cycle: lock, transitions, notification policy
- Components: process checker, status store, notifier
- Installation: scheduler strategy cascade, background loop
- CLI: command dispatch, diagnostics, status report

Run all tests:
    pytest

Run a single file:
    pytest tests/test_monitoring_cycle.py
"""
