"""systemd service/timer units that run a task non-interactively."""

from __future__ import annotations

import getpass
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from src.config import settings
from src.errors import CourierError
from src.scheduler.triggers import calendar_rule_for

if TYPE_CHECKING:
    from src.scheduler.models import Task

logger = logging.getLogger(__name__)

_SERVICE_TEMPLATE = """\
[Unit]
Description=sqlcourier {name}
After=network.target

[Service]
Type=oneshot
WorkingDirectory={home}
ExecStart={executable} run {name}
User={user}
Environment="HOME={home}"
StandardOutput=append:{log_file}
StandardError=append:{error_log_file}

[Install]
WantedBy=multi-user.target
"""

_TIMER_HEADER = """\
[Unit]
Description=Timer for sqlcourier {name}

[Timer]
"""

_TIMER_FOOTER = """\
Persistent=true

[Install]
WantedBy=timers.target
"""


def unit_name(task_name: str, suffix: str) -> str:
    """``sqlcourier-<task>.<suffix>`` (prefix from settings)."""
    return f"{settings.unit_prefix}-{task_name}.{suffix}"


def render_service(task: Task) -> str:
    home = Path.home()
    return _SERVICE_TEMPLATE.format(
        name=task.name,
        home=home,
        executable=settings.executable,
        user=getpass.getuser(),
        log_file=settings.log_file,
        error_log_file=settings.error_log_file,
    )


def render_timer(task: Task) -> str:
    rule = calendar_rule_for(task.schedule, task.timezone)
    lines = [_TIMER_HEADER.format(name=task.name)]
    if rule.relative:
        lines.append("OnBootSec=0min\n")
    lines.append(f"{rule}\n")
    lines.append(_TIMER_FOOTER)
    return "".join(lines)


def _run(command: list[str]) -> None:
    logger.info("Running: %s", " ".join(command))
    try:
        subprocess.run(command, check=True)
    except (subprocess.CalledProcessError, OSError) as exc:
        msg = f"failed to execute command {command}: {exc}"
        raise CourierError(msg) from exc


def install(task: Task) -> None:
    """Write the units for *task* and enable its timer (requires sudo)."""
    service = unit_name(task.name, "service")
    timer = unit_name(task.name, "timer")
    staged: list[tuple[Path, Path]] = []
    for name, content in ((service, render_service(task)), (timer, render_timer(task))):
        tmp = Path(tempfile.gettempdir()) / name
        tmp.write_text(content, encoding="utf-8")
        staged.append((tmp, settings.systemd_unit_dir / name))

    user = getpass.getuser()
    commands = [["sudo", "mv", str(src), str(dst)] for src, dst in staged]
    commands += [
        ["sudo", "systemctl", "daemon-reload"],
        ["sudo", "systemctl", "enable", timer],
        ["sudo", "systemctl", "start", timer],
        ["sudo", "touch", str(settings.log_file), str(settings.error_log_file)],
        ["sudo", "chown", f"{user}:{user}", str(settings.log_file), str(settings.error_log_file)],
    ]
    for command in commands:
        _run(command)
    logger.info("Installed systemd timer for task '%s'", task.name)


def remove(task_name: str) -> None:
    """Stop, disable and delete the units for *task_name* (requires sudo)."""
    timer = unit_name(task_name, "timer")
    service = unit_name(task_name, "service")
    commands = [
        ["sudo", "systemctl", "stop", timer],
        ["sudo", "systemctl", "disable", timer],
        ["sudo", "rm", "-f", str(settings.systemd_unit_dir / service)],
        ["sudo", "rm", "-f", str(settings.systemd_unit_dir / timer)],
        ["sudo", "systemctl", "daemon-reload"],
    ]
    for command in commands:
        _run(command)
    logger.info("Removed systemd timer for task '%s'", task_name)


def enable(task_name: str) -> None:
    """Enable and start the timer for an installed task (requires sudo)."""
    timer = unit_name(task_name, "timer")
    _run(["sudo", "systemctl", "enable", timer])
    _run(["sudo", "systemctl", "start", timer])
    logger.info("Enabled systemd timer for task '%s'", task_name)


def disable(task_name: str) -> None:
    """Stop and disable the timer, keeping the unit files (requires sudo)."""
    timer = unit_name(task_name, "timer")
    _run(["sudo", "systemctl", "stop", timer])
    _run(["sudo", "systemctl", "disable", timer])
    _run(["sudo", "systemctl", "stop", unit_name(task_name, "service")])
    logger.info("Disabled systemd timer for task '%s'", task_name)


def status(task_name: str | None = None) -> int:
    """Show the timer status for one task, or list every sqlcourier timer.

    Output goes straight to the terminal. Returns systemctl's exit code,
    which is non-zero for an inactive or unknown unit.
    """
    if task_name is None:
        command = ["systemctl", "list-timers", "--all", f"{settings.unit_prefix}-*"]
    else:
        command = ["systemctl", "status", "--no-pager", unit_name(task_name, "timer")]
    try:
        return subprocess.run(command, check=False).returncode
    except OSError as exc:
        msg = f"failed to execute command {command}: {exc}"
        raise CourierError(msg) from exc
