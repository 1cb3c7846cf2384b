"""The host an operation runs against.

A ``Host`` bundles the settings with every side-effecting primitive the
workflows use (command runner, sleep, executable lookup, privilege and
architecture probes, script download) so each can be replaced in tests.
"""
import os
import platform
import shutil
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ...config import Settings, get_settings
from .utils import CommandResult, run_command


@dataclass(frozen=True)
class Host:
    settings: Settings = field(default_factory=get_settings)
    runner: Callable[..., CommandResult] = run_command
    sleep: Callable[[float], None] = time.sleep
    which: Callable[[str], Optional[str]] = shutil.which
    euid: Callable[[], int] = os.geteuid
    machine: Callable[[], str] = platform.machine
    # (url, timeout) -> script text; None selects installer.fetch_install_script
    fetch: Optional[Callable[[str, int], str]] = None

    @property
    def paths(self):
        return self.settings.paths

    def run(self, args: Sequence[str], **kwargs) -> CommandResult:
        return self.runner(args, **kwargs)

    def command_exists(self, name: str) -> bool:
        return self.which(name) is not None


def current_host() -> Host:
    """Host for the running process, built from the global settings."""
    return Host(settings=get_settings())
