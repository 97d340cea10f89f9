"""
Scheduling Installer
====================
Installs `<install_path> run` as a once-a-minute job using the best
scheduler the host offers.  Strategies are tried in priority order and
the first one that is available *and* installs cleanly wins:

    1. systemd   - oneshot service + persistent timer
    2. cron      - file in a periodic cron directory, else a crontab entry
    3. loop      - detached background loop (cannot fail)

Selection happens once, at install time.
"""

import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

import procmon
from procmon.automation.host import can_write, detect_system
from procmon.utils.safe_logging import get_safe_logger

logger = get_safe_logger(__name__)

CRON_EVERY_MINUTE = '* * * * *'

# Directory holding the procmon package (a checkout or site-packages)
PACKAGE_ROOT = Path(procmon.__file__).resolve().parent.parent


def run_command(cmd: List[str], timeout: int = 30) -> bool:
    """Run *cmd*, True on exit status 0. Missing binaries count as failure."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Command failed: {' '.join(cmd)}: {e}")
        return False
    if result.returncode != 0:
        logger.debug(f"Command exited {result.returncode}: {' '.join(cmd)}",
                     stderr=result.stderr.strip())
    return result.returncode == 0


# ----------------------------------------------------------------------
# Unit file templates
# ----------------------------------------------------------------------

def render_service_unit(settings, system_wide: bool = True) -> str:
    lines = [
        "[Unit]",
        "Description=Monitor Test Process Service",
    ]
    if system_wide:
        lines += ["After=network.target", "Wants=network.target"]
    lines += [
        "",
        "[Service]",
        "Type=oneshot",
    ]
    if system_wide:
        lines += ["User=root", "Group=root"]
    lines.append(f"ExecStart={settings.INSTALL_PATH} run")
    if system_wide:
        lines += [
            "StandardOutput=journal",
            "StandardError=journal",
            f"ReadWritePaths={settings.LOG_FILE} /tmp",
            "NoNewPrivileges=yes",
        ]
    lines += [
        "",
        "[Install]",
        "WantedBy=multi-user.target",
        "",
    ]
    return "\n".join(lines)


def render_timer_unit(settings) -> str:
    return "\n".join([
        "[Unit]",
        "Description=Run Test Process Monitor every minute",
        f"Requires={settings.SERVICE_NAME}.service",
        "",
        "[Timer]",
        "OnBootSec=1min",
        "OnUnitActiveSec=1min",
        "AccuracySec=1s",
        "Persistent=true",
        "",
        "[Install]",
        "WantedBy=timers.target",
        "",
    ])


# ----------------------------------------------------------------------
# Strategies
# ----------------------------------------------------------------------

class InstallStrategy:
    """A periodic-execution mechanism: a capability probe plus an install action."""

    name = 'strategy'

    def __init__(self, settings):
        self.settings = settings

    def is_available(self) -> bool:
        raise NotImplementedError

    def install(self) -> bool:
        raise NotImplementedError


class SystemdTimerStrategy(InstallStrategy):
    """Declarative oneshot service plus a 1-minute persistent timer."""

    name = 'systemd'

    @property
    def service_file(self) -> Path:
        return Path(self.settings.SYSTEMD_DIR) / f'{self.settings.SERVICE_NAME}.service'

    @property
    def timer_file(self) -> Path:
        return Path(self.settings.SYSTEMD_DIR) / f'{self.settings.SERVICE_NAME}.timer'

    def is_available(self) -> bool:
        if shutil.which('systemctl') is None:
            return False
        return can_write(self.service_file)

    def install(self) -> bool:
        logger.info("Installing systemd service...")
        try:
            self.service_file.write_text(render_service_unit(self.settings), encoding='utf-8')
            self.timer_file.write_text(render_timer_unit(self.settings), encoding='utf-8')
        except OSError as e:
            logger.warning(f"Could not write systemd units: {e}")
            return False

        timer = f'{self.settings.SERVICE_NAME}.timer'
        if not run_command(['systemctl', 'daemon-reload']):
            logger.warning("systemctl daemon-reload failed")
            return False
        if not run_command(['systemctl', 'enable', timer, '--now']):
            logger.warning(f"Could not enable {timer}")
            return False

        logger.info("Systemd service installed and started")
        return True


class CronStrategy(InstallStrategy):
    """Periodic cron directory file, or an idempotent user crontab entry."""

    name = 'cron'

    def writable_cron_dir(self) -> Optional[Path]:
        for location in self.settings.CRON_DIRS:
            location = Path(location)
            if location.is_dir() and os.access(location, os.W_OK):
                return location
        return None

    def is_available(self) -> bool:
        return self.writable_cron_dir() is not None or shutil.which('crontab') is not None

    def install(self) -> bool:
        logger.info("Trying cron installation...")

        location = self.writable_cron_dir()
        if location is not None:
            cron_file = location / self.settings.SERVICE_NAME
            try:
                cron_file.write_text(
                    f"{CRON_EVERY_MINUTE} root {self.settings.INSTALL_PATH} run\n",
                    encoding='utf-8',
                )
                os.chmod(cron_file, 0o644)
            except OSError as e:
                logger.warning(f"Could not write {cron_file}: {e}")
            else:
                logger.info(f"Installed in {location}/")
                return True

        if shutil.which('crontab') is not None:
            if self.install_crontab_entry():
                logger.info("Added to crontab")
                return True

        return False

    def install_crontab_entry(self) -> bool:
        """Replace any previous entry for this service with a fresh one."""
        try:
            current = subprocess.run(
                ['crontab', '-l'], capture_output=True, text=True, timeout=30
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Could not read crontab: {e}")
            return False

        # `crontab -l` exits non-zero when the user has no crontab yet
        existing = current.stdout if current.returncode == 0 else ''
        markers = (self.settings.SERVICE_NAME, str(self.settings.INSTALL_PATH))
        lines = [
            line for line in existing.splitlines()
            if line.strip() and not any(marker in line for marker in markers)
        ]
        lines.append(f"{CRON_EVERY_MINUTE} {self.settings.INSTALL_PATH} run")
        content = "\n".join(lines) + "\n"

        try:
            written = subprocess.run(
                ['crontab', '-'], input=content, capture_output=True, text=True, timeout=30
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Could not write crontab: {e}")
            return False
        return written.returncode == 0


class BackgroundLoopStrategy(InstallStrategy):
    """Last resort: user units (best effort) plus a detached loop process."""

    name = 'background'

    def is_available(self) -> bool:
        return True

    def install(self) -> bool:
        logger.info("Creating background daemon service...")
        self.install_user_units()
        self.start_background_process()
        logger.info("Background daemon created")
        return True

    def install_user_units(self) -> None:
        """User-scoped systemd timer; every error is ignored."""
        unit_dir = Path(self.settings.USER_SYSTEMD_DIR)
        name = self.settings.SERVICE_NAME
        try:
            unit_dir.mkdir(parents=True, exist_ok=True)
            (unit_dir / f'{name}.service').write_text(
                render_service_unit(self.settings, system_wide=False), encoding='utf-8'
            )
            (unit_dir / f'{name}.timer').write_text(
                render_timer_unit(self.settings), encoding='utf-8'
            )
        except OSError as e:
            logger.debug(f"User units not written: {e}")
            return

        if shutil.which('systemctl') is not None:
            run_command(['systemctl', '--user', 'daemon-reload'])
            run_command(['systemctl', '--user', 'enable', f'{name}.timer'])
            run_command(['systemctl', '--user', 'start', f'{name}.timer'])

    def write_helper_scripts(self) -> None:
        launcher = self.settings.INSTALL_PATH
        self.settings.loop_script.write_text(
            f"#!/bin/sh\nexec {launcher} loop\n", encoding='utf-8'
        )
        os.chmod(self.settings.loop_script, 0o755)

        self.settings.stop_script.write_text(
            f"#!/bin/sh\nexec {launcher} stop\n", encoding='utf-8'
        )
        os.chmod(self.settings.stop_script, 0o755)

    def start_background_process(self) -> Optional[int]:
        logger.info("Starting background monitoring process...")
        try:
            self.write_helper_scripts()
            # New session: the loop must outlive the installer
            proc = subprocess.Popen(
                [str(self.settings.loop_script)],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
                close_fds=True,
            )
        except OSError as e:
            logger.warning(f"Could not start background process: {e}")
            return None

        try:
            self.settings.loop_pid_file.write_text(f"{proc.pid}\n", encoding='utf-8')
        except OSError as e:
            # stop falls back to matching the loop's command line
            logger.warning(f"Could not record background pid {proc.pid}: {e}")

        logger.info(f"Background process started. Stop with: {self.settings.stop_script}")
        return proc.pid


# ----------------------------------------------------------------------
# Installer
# ----------------------------------------------------------------------

class SchedulingInstaller:
    """Tries each strategy in order until one installs."""

    def __init__(self, settings, strategies: Optional[List[InstallStrategy]] = None):
        self.settings = settings
        if strategies is None:
            strategies = [
                SystemdTimerStrategy(settings),
                CronStrategy(settings),
                BackgroundLoopStrategy(settings),
            ]
        self.strategies = strategies
        self.attempted: List[str] = []

    def install(self) -> Optional[str]:
        """Install into the first working scheduler.

        Returns:
            The name of the strategy used.  The background loop always
            succeeds, so with the default strategy list this is never None.
        """
        logger.info(f"Detected system: {detect_system()}")

        for strategy in self.strategies:
            self.attempted.append(strategy.name)
            if not strategy.is_available():
                logger.debug(f"Scheduler {strategy.name} not available")
                continue
            if strategy.install():
                return strategy.name
            logger.warning(f"Scheduler {strategy.name} failed, trying next")

        return None


def write_launcher(settings, python: Optional[str] = None) -> Path:
    """Write the executable entry point the schedulers invoke.

    The package's parent directory is put on PYTHONPATH so the launcher
    also works when procmon runs from a checkout rather than an install.
    """
    python = python or sys.executable
    path = Path(settings.INSTALL_PATH)
    logger.info(f"Copying script to {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "#!/bin/sh\n"
        f"PYTHONPATH={shlex.quote(str(PACKAGE_ROOT))}${{PYTHONPATH:+:$PYTHONPATH}}\n"
        "export PYTHONPATH\n"
        f'exec {shlex.quote(python)} -m procmon "$@"\n',
        encoding='utf-8',
    )
    os.chmod(path, 0o755)
    logger.info("Script copied to installation location")
    return path
