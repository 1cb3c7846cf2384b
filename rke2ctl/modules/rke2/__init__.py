"""
RKE2 Node Lifecycle Module

This package installs, configures, inspects and removes a single RKE2 node
(server or agent) on the local host.

Key Features:
- Read-only host preflight (privileges, tooling, architecture, OS)
- Idempotent config.yaml generation, or verbatim copy of a supplied file
- Delegation to the vendor install script
- Service activation with a bounded restart/retry state machine
- Uninstall with timestamped backups, dry-run and optional data wipe
"""

from .models import (
    ActivationState,
    InstallRequest,
    NodeRole,
    ServiceState,
    StepPolicy,
    StepResult,
    UninstallPlan,
    UninstallRequest,
)
from .host import Host, current_host
from .core import RKE2NodeInstaller
from .configure import ConfigDocument, materialize_config, resolve_token
from .service import ServiceActivator, SystemdUnit
from .reset import DestructiveCleanup, detect_role, plan_uninstall, uninstall_node

__all__ = [
    # Models
    'ActivationState',
    'InstallRequest',
    'NodeRole',
    'ServiceState',
    'StepPolicy',
    'StepResult',
    'UninstallPlan',
    'UninstallRequest',

    # Host and workflows
    'Host',
    'current_host',
    'RKE2NodeInstaller',
    'ConfigDocument',
    'materialize_config',
    'resolve_token',
    'ServiceActivator',
    'SystemdUnit',
    'DestructiveCleanup',
    'detect_role',
    'plan_uninstall',
    'uninstall_node',
]
