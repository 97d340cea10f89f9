"""procmon - process liveness monitor with self-installing scheduling."""

__version__ = "1.0.0"
