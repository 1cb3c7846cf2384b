"""Host precondition checks run before any mutation.

``validate_host`` only reads; swap handling is the one mutating helper here
and runs after validation, when the operator asked for it.
"""
import logging
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ...config import PreflightSettings
from ...errors import MissingDependencyError, PrivilegeError, UnsupportedPlatformError
from .host import Host
from .models import NodeRole, StepPolicy
from .utils import check_step, read_os_release, step_from_command

logger = logging.getLogger("rke2.preflight")

SWAP_LINE = re.compile(r'^\s*[^#\s]\S*\s+\S+\s+swap\s+')


@dataclass(frozen=True)
class HostFacts:
    """Read-only facts about the host."""
    euid: int
    has_systemctl: bool
    has_curl: bool
    arch: str
    os_id: Optional[str] = None

    @classmethod
    def detect(cls, host: Host) -> 'HostFacts':
        os_release = read_os_release(host.paths.resolve(host.paths.os_release))
        return cls(
            euid=host.euid(),
            has_systemctl=host.command_exists('systemctl'),
            has_curl=host.command_exists('curl'),
            arch=host.machine(),
            os_id=os_release.get('ID'),
        )


def require_root(euid: int) -> None:
    if euid != 0:
        raise PrivilegeError("Run as root (sudo).")


def validate_system(facts: HostFacts, settings: PreflightSettings) -> List[str]:
    """Check tooling, architecture and OS.

    Returns:
        Non-fatal warnings (unknown or undetectable OS).

    Raises:
        MissingDependencyError: systemctl or curl is missing
        UnsupportedPlatformError: architecture is not supported
    """
    if not facts.has_systemctl:
        raise MissingDependencyError("systemd is required but not available on this system.")
    if not facts.has_curl:
        raise MissingDependencyError("curl is required but not available. Please install curl first.")

    if facts.arch not in settings.supported_arches:
        raise UnsupportedPlatformError(
            f"Unsupported architecture: {facts.arch}. Supported: {', '.join(settings.supported_arches)}"
        )

    warnings = []
    if not facts.os_id:
        warnings.append("Could not detect OS from /etc/os-release")
    elif facts.os_id not in settings.known_os_ids:
        warnings.append(f"OS {facts.os_id} may not be officially supported by RKE2")
    for warning in warnings:
        logger.warning(f"⚠️  {warning}")
    return warnings


def validate_host(host: Host, facts: Optional[HostFacts] = None) -> HostFacts:
    """Run all read-only install preconditions, in the order they are reported."""
    facts = facts or HostFacts.detect(host)
    require_root(facts.euid)
    validate_system(facts, host.settings.preflight)
    return facts


def _available_memory_mb(meminfo: Path = Path('/proc/meminfo')) -> Optional[int]:
    try:
        with open(meminfo, 'r') as f:
            for line in f:
                if line.startswith('MemAvailable:'):
                    return int(line.split()[1]) // 1024
    except (OSError, ValueError, IndexError):
        return None
    return None


def check_prerequisites(role: NodeRole, host: Host) -> List[str]:
    """Report the current installation state and low-resource warnings."""
    warnings = []
    service = role.service_name

    if host.run(['systemctl', 'is-active', '--quiet', service]).ok:
        logger.info(f"RKE2 {role.value} service is already running.")
        return warnings

    if host.command_exists('rke2'):
        warnings.append("RKE2 is installed but service is not running. Will attempt to start.")

    settings = host.settings.preflight
    try:
        free_mb = shutil.disk_usage(str(host.paths.root)).free // (1024 * 1024)
    except OSError:
        free_mb = None
    if free_mb is not None and free_mb < settings.min_disk_mb:
        warnings.append(
            f"Low disk space available: {free_mb}MB. RKE2 requires at least {settings.min_disk_mb}MB."
        )

    available_mem = _available_memory_mb()
    if available_mem is not None and available_mem < settings.min_memory_mb:
        warnings.append(
            f"Low available memory: {available_mem}MB. RKE2 requires at least {settings.min_memory_mb}MB."
        )

    for warning in warnings:
        logger.warning(f"⚠️  {warning}")
    return warnings


def is_swap_on(host: Host) -> bool:
    result = host.run(['swapon', '--noheadings', '--show'])
    return result.ok and bool(result.stdout.strip())


def comment_swap_entries(fstab_text: str) -> str:
    """Comment out active swap entries; already commented lines are left alone."""
    lines = []
    for line in fstab_text.splitlines(keepends=True):
        if SWAP_LINE.match(line):
            line = f"# {line}"
        lines.append(line)
    return ''.join(lines)


def disable_swap(host: Host) -> bool:
    """Turn swap off and keep it off across reboots.

    Returns:
        True if swap was active and has been handled.
    """
    if not is_swap_on(host):
        return False

    logger.info("Disabling swap (temporarily)...")
    check_step(step_from_command('swapoff', StepPolicy.ADVISORY, host.run(['swapoff', '-a'])))

    fstab = host.paths.resolve(host.paths.fstab)
    if fstab.is_file():
        logger.info(f"Commenting swap entries in {fstab} (idempotently).")
        original = fstab.read_text()
        backup = fstab.with_name(f"{fstab.name}.backup.{int(time.time())}")
        shutil.copy2(fstab, backup)
        updated = comment_swap_entries(original)
        if updated != original:
            fstab.write_text(updated)
    return True
