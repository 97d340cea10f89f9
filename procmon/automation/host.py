"""Host capability probes used by the installer and diagnostics."""

import os
import subprocess
from pathlib import Path


def detect_system(root: Path = Path('/')) -> str:
    """Fingerprint the init system: nixos, systemd, upstart, openrc or unknown.

    Informational only; strategy selection probes capabilities directly.
    """
    if (root / 'etc/nixos/configuration.nix').is_file():
        return 'nixos'
    if (root / 'run/systemd/system').is_dir() or (root / 'lib/systemd/system').is_dir():
        return 'systemd'

    init = root / 'sbin/init'
    if init.is_file():
        try:
            out = subprocess.run(
                [str(init), '--version'],
                capture_output=True,
                text=True,
                timeout=5,
            )
            if 'upstart' in (out.stdout + out.stderr):
                return 'upstart'
        except (OSError, subprocess.SubprocessError):
            pass

    rc_status = root / 'sbin/rc-status'
    if rc_status.is_file() and os.access(rc_status, os.X_OK):
        return 'openrc'
    return 'unknown'


def is_root() -> bool:
    return hasattr(os, 'geteuid') and os.geteuid() == 0


def can_write(path: Path) -> bool:
    """Write-permission probe: touch *path* without truncating it."""
    try:
        Path(path).touch(exist_ok=True)
    except OSError:
        return False
    return True
