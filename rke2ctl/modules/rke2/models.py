"""Data models for RKE2 node lifecycle management."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ...errors import ValidationError


class NodeRole(str, Enum):
    """Operating mode of the node."""
    SERVER = 'server'
    AGENT = 'agent'

    @property
    def service_name(self) -> str:
        return f'rke2-{self.value}'

    @property
    def uninstall_script(self) -> str:
        return 'rke2-uninstall.sh' if self is NodeRole.SERVER else 'rke2-agent-uninstall.sh'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'NodeRole':
        """Parse a --role value, raising ValidationError when missing or unknown."""
        if not value:
            raise ValidationError("Provide --role server|agent")
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid role: {value}. Must be 'server' or 'agent'") from None


class ServiceState(str, Enum):
    """Service state as observed through systemd."""
    NOT_INSTALLED = 'not-installed'
    INSTALLED_INACTIVE = 'installed-inactive'
    INSTALLED_ACTIVE = 'installed-active'


class ActivationState(str, Enum):
    """States of the service activation state machine."""
    DISABLED = 'disabled'
    ENABLING = 'enabling'
    STARTING = 'starting'
    ACTIVE = 'active'
    FAILED = 'failed'


class StepPolicy(str, Enum):
    """What a failed step means for the surrounding workflow."""
    FATAL = 'fatal'
    ADVISORY = 'advisory'


@dataclass
class StepResult:
    """Outcome of one external step."""
    name: str
    policy: StepPolicy
    ok: bool
    detail: str = ''
    skipped: bool = False


@dataclass(frozen=True)
class InstallRequest:
    """Validated options for the install command."""
    role: NodeRole
    channel: str = 'stable'
    version: Optional[str] = None
    config_path: Optional[Path] = None
    server_url: Optional[str] = None
    token: Optional[str] = None
    token_file: Optional[Path] = None
    cluster_init: bool = False
    auto_swapoff: bool = False
    force: bool = False


@dataclass(frozen=True)
class UninstallRequest:
    """Options for the uninstall workflow."""
    role: Optional[NodeRole] = None
    force: bool = False
    dry_run: bool = False
    backup_dir: Optional[Path] = None
    clean_data: bool = False


@dataclass
class BackupSet:
    """Copies of mutable RKE2 state taken before an uninstall."""
    directory: Path
    files: List[Path] = field(default_factory=list)


@dataclass
class UninstallPlan:
    """Everything an uninstall would touch, computed without side effects."""
    role: NodeRole
    backup_dir: Path
    backup_files: List[Path] = field(default_factory=list)
    removal_targets: List[Path] = field(default_factory=list)
    clean_data: bool = False

    @property
    def service_name(self) -> str:
        return self.role.service_name


@dataclass
class ActivationResult:
    """Outcome of the activation state machine."""
    service_name: str
    state: ActivationState
    attempts: int = 0
    transitions: List[ActivationState] = field(default_factory=list)
    datastore_ready: Optional[bool] = None


@dataclass
class UninstallReport:
    """Steps executed by a live uninstall."""
    plan: UninstallPlan
    backup: Optional[BackupSet] = None
    steps: List[StepResult] = field(default_factory=list)
    cancelled: bool = False
