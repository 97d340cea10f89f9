"""
Automation Module
=================
Installs the monitor into the host's periodic scheduler and runs the
background loop used when no scheduler is available.
"""

from procmon.automation.installer import SchedulingInstaller, write_launcher

__all__ = ['SchedulingInstaller', 'write_launcher']
