"""Utility functions for RKE2 node management."""
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Type

from ...errors import RKE2Error
from .models import StepPolicy, StepResult

logger = logging.getLogger("rke2.utils")


@dataclass
class CommandResult:
    """Exit status and output of an external command."""
    args: Sequence[str]
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def detail(self) -> str:
        output = (self.stderr or self.stdout).strip()
        return output or f"exit status {self.returncode}"


def run_command(
    args: Sequence[str],
    input: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    capture: bool = True,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run a local command without a shell.

    Args:
        args: Program and arguments
        input: Text written to the command's stdin
        env: Full environment for the child (defaults to the current one)
        capture: Capture stdout/stderr; when False output streams to the terminal
        timeout: Seconds before the command is killed

    Returns:
        CommandResult. A missing executable is reported as exit status 127,
        a timeout as 124, mirroring the shell.
    """
    command = [str(a) for a in args]
    logger.debug(f"Running: {' '.join(shlex.quote(a) for a in command)}")
    try:
        completed = subprocess.run(
            command,
            input=input,
            env=dict(env) if env is not None else None,
            capture_output=capture,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        return CommandResult(command, 127, '', str(e))
    except subprocess.TimeoutExpired:
        return CommandResult(command, 124, '', f"timed out after {timeout}s")

    result = CommandResult(command, completed.returncode, completed.stdout or '', completed.stderr or '')
    if not result.ok:
        logger.debug(f"Command {command[0]} exited {result.returncode}: {result.detail}")
    return result


def step_from_command(name: str, policy: StepPolicy, result: CommandResult) -> StepResult:
    return StepResult(name=name, policy=policy, ok=result.ok, detail='' if result.ok else result.detail)


def check_step(step: StepResult, error: Type[RKE2Error] = RKE2Error) -> StepResult:
    """Apply a step's policy.

    Fatal failures raise ``error``; advisory failures are logged and returned.
    """
    if step.ok or step.skipped:
        return step
    if step.policy is StepPolicy.FATAL:
        raise error(f"{step.name} failed: {step.detail}")
    logger.warning(f"⚠️  {step.name} failed, continuing: {step.detail}")
    return step


def read_os_release(path: Path) -> Dict[str, str]:
    """Parse an os-release file into a dict; empty when the file is missing."""
    values: Dict[str, str] = {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                key, _, value = line.partition('=')
                values[key] = value.strip().strip('"').strip("'")
    except FileNotFoundError:
        return {}
    return values


def directory_size(path: Path) -> int:
    """Total size in bytes of regular files below path (symlinks not followed)."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue
    return total


def human_size(num_bytes: int) -> str:
    """Format a byte count the way ``du -h`` does."""
    size = float(num_bytes)
    for unit in ('B', 'K', 'M', 'G', 'T'):
        if size < 1024 or unit == 'T':
            if unit == 'B':
                return f"{int(size)}{unit}"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"
