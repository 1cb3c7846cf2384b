"""RKE2 uninstall, backup and cleanup functionality."""
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from ...errors import AmbiguousRoleError, BackupError, CommandError, NotInstalledError
from .host import Host
from .models import (
    BackupSet,
    NodeRole,
    StepPolicy,
    StepResult,
    UninstallPlan,
    UninstallReport,
    UninstallRequest,
)
from .preflight import require_root
from .service import SystemdUnit
from .utils import check_step, step_from_command

logger = logging.getLogger("rke2.reset")


def detect_role(host: Host) -> NodeRole:
    """Work out the installed role from the unit files present.

    Raises:
        AmbiguousRoleError: both server and agent units are installed
        NotInstalledError: neither unit is installed
    """
    installed = [role for role in NodeRole if host.paths.unit_file(role.service_name).is_file()]
    if len(installed) > 1:
        raise AmbiguousRoleError(
            "Both server and agent are installed. Please specify --role server|agent"
        )
    if not installed:
        raise NotInstalledError("Could not detect RKE2 role. Please specify --role server|agent")
    logger.info(f"Auto-detected role: {installed[0].value}")
    return installed[0]


def resolve_role(request: UninstallRequest, host: Host) -> NodeRole:
    """An explicit role wins; otherwise detect it. Either way it must be installed."""
    role = request.role or detect_role(host)
    if not host.paths.unit_file(role.service_name).is_file():
        raise NotInstalledError(f"RKE2 {role.value} is not installed on this system.")
    return role


def backup_candidates(role: NodeRole, host: Host) -> List[Path]:
    """Files worth keeping before an uninstall; missing ones are skipped."""
    paths = host.paths
    candidates = [paths.config_path]
    if role is NodeRole.SERVER:
        candidates.append(paths.kubeconfig_path)
    candidates.append(paths.node_token_path)
    candidates.append(paths.unit_file(role.service_name))
    return [path for path in candidates if path.is_file()]


def removal_targets(host: Host) -> List[Path]:
    """Everything destructive cleanup removes: data dirs, binary, vendor scripts."""
    paths = host.paths
    targets = [paths.resolve(d) for d in paths.data_dirs]
    targets.append(paths.binary_path)
    targets.extend(paths.script(role.uninstall_script) for role in NodeRole)
    return targets


def plan_uninstall(request: UninstallRequest, host: Host, now: Optional[datetime] = None) -> UninstallPlan:
    """Resolve the role and compute what an uninstall would touch. Read-only."""
    role = resolve_role(request, host)
    return UninstallPlan(
        role=role,
        backup_dir=Path(request.backup_dir) if request.backup_dir else host.paths.default_backup_dir(now),
        backup_files=backup_candidates(role, host),
        removal_targets=removal_targets(host) if request.clean_data else [],
        clean_data=request.clean_data,
    )


def create_backup(plan: UninstallPlan) -> BackupSet:
    """Copy the plan's backup files into a fresh backup directory.

    An existing non-empty directory is never reused, so earlier backups stay
    untouched.

    Raises:
        BackupError: the directory is unusable or a copy failed
    """
    directory = plan.backup_dir
    logger.info(f"Creating backup in {directory}...")
    if directory.exists() and (not directory.is_dir() or any(directory.iterdir())):
        raise BackupError(
            f"Backup directory {directory} already exists and is not empty. Choose another --backup-dir."
        )

    backup = BackupSet(directory=directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        for source in plan.backup_files:
            if not source.is_file():
                continue
            destination = directory / source.name
            shutil.copy2(source, destination)
            backup.files.append(destination)
            logger.info(f"✓ Backed up {source.name}")
    except OSError as e:
        raise BackupError(f"Failed to create backup in {directory}: {e}") from e

    logger.info(f"Backup completed: {plan.backup_dir}")
    return backup


class DestructiveCleanup:
    """Irreversible removal of data directories and binaries.

    Each target is attempted independently; a failure on one does not stop the
    others.
    """

    def __call__(self, targets: List[Path]) -> List[StepResult]:
        logger.warning("⚠️  Removing RKE2 data directories (this will delete all cluster data)...")
        steps = []
        for target in targets:
            steps.append(self._remove(target))
        logger.info("Data cleanup completed.")
        return steps

    def _remove(self, target: Path) -> StepResult:
        name = f"Remove {target}"
        if not target.exists() and not target.is_symlink():
            return StepResult(name=name, policy=StepPolicy.ADVISORY, ok=True, skipped=True)
        logger.info(f"Removing {target}...")
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            return check_step(StepResult(name=name, policy=StepPolicy.ADVISORY, ok=False, detail=str(e)))
        return StepResult(name=name, policy=StepPolicy.ADVISORY, ok=True)


def run_vendor_uninstall(role: NodeRole, host: Host) -> StepResult:
    """Run the vendor uninstall script for the role, if it is present.

    Raises:
        CommandError: the script exists but exited non-zero
    """
    script = host.paths.script(role.uninstall_script)
    name = f"Vendor uninstall ({script.name})"
    if not (script.is_file() and os.access(script, os.X_OK)):
        logger.warning("⚠️  Official uninstall script not found, performing manual cleanup...")
        return StepResult(name=name, policy=StepPolicy.ADVISORY, ok=False,
                          detail=f"{script} not found", skipped=True)

    logger.info(f"Running official RKE2 {role.value} uninstall script...")
    result = host.run([str(script)], capture=False)
    return check_step(step_from_command(name, StepPolicy.FATAL, result), CommandError)


def uninstall_node(
    plan: UninstallPlan,
    host: Host,
    confirm: Optional[Callable[[UninstallPlan], bool]] = None,
    cleanup: Optional[Callable[[List[Path]], List[StepResult]]] = None,
) -> UninstallReport:
    """Back up, confirm, then remove the role's service.

    Args:
        plan: Output of ``plan_uninstall``
        host: Host to act on
        confirm: Confirmation gate; None means forced (no prompt)
        cleanup: Destructive cleanup collaborator, used only when the plan asks for it

    Raises:
        PrivilegeError: not running as root
        CommandError: the vendor uninstall script failed
        BackupError: the backup directory is unusable or a copy failed
    """
    require_root(host.euid())
    report = UninstallReport(plan=plan)
    report.backup = create_backup(plan)

    if confirm is not None and not confirm(plan):
        logger.info("Uninstall cancelled.")
        report.cancelled = True
        return report

    unit = SystemdUnit(plan.role, host)
    if unit.is_active():
        logger.info(f"Stopping {unit.name} service...")
        report.steps.append(check_step(step_from_command(f"Stop {unit.name}", StepPolicy.ADVISORY, unit.stop())))

    if unit.is_registered():
        logger.info(f"Disabling {unit.name} service...")
        report.steps.append(
            check_step(step_from_command(f"Disable {unit.name}", StepPolicy.ADVISORY, unit.disable()))
        )

    report.steps.append(run_vendor_uninstall(plan.role, host))

    if plan.clean_data:
        cleanup = cleanup or DestructiveCleanup()
        report.steps.extend(cleanup(plan.removal_targets))

    logger.info(f"RKE2 {plan.role.value} uninstall completed.")
    logger.info(f"Backup available at: {plan.backup_dir}")
    return report
