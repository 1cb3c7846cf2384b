import logging
from pathlib import Path
from typing import Optional

import typer

from rke2ctl.config import get_settings
from rke2ctl.errors import RKE2Error
from rke2ctl.logging import setup_logging
from rke2ctl.modules.rke2 import host as rke2_host
from rke2ctl.modules.rke2.health import render_dry_run
from rke2ctl.modules.rke2.models import NodeRole, UninstallPlan, UninstallRequest
from rke2ctl.modules.rke2.reset import DestructiveCleanup, plan_uninstall, uninstall_node

logger = logging.getLogger("rke2.cli")


def confirm_uninstall(plan: UninstallPlan) -> bool:
    """Ask for a literal "yes"; anything else, including EOF, cancels."""
    typer.echo()
    typer.echo(f"⚠️  WARNING: This will uninstall RKE2 {plan.role.value} from this system.")
    if plan.clean_data:
        typer.echo("❌ WARNING: --clean-data flag is set. This will DELETE ALL CLUSTER DATA!", err=True)
        typer.echo("❌ This action is IRREVERSIBLE!", err=True)
    typer.echo()
    try:
        reply = typer.prompt("Are you sure you want to continue? (yes/no)", default="", show_default=False)
    except typer.Abort:
        return False
    return reply.strip().lower() == "yes"


def run_uninstall(request: UninstallRequest) -> None:
    """Plan, then either print the dry run or perform the uninstall."""
    host = rke2_host.current_host()
    try:
        plan = plan_uninstall(request, host)
        if request.dry_run:
            typer.echo(render_dry_run(plan), nl=False)
            return

        report = uninstall_node(
            plan,
            host,
            confirm=None if request.force else confirm_uninstall,
            cleanup=DestructiveCleanup(),
        )
    except RKE2Error as e:
        typer.echo(f"❌ {e}", err=True)
        logger.debug("Uninstall failed", exc_info=True)
        raise typer.Exit(code=e.exit_code)

    if report.cancelled:
        typer.echo("Uninstall cancelled.")
        typer.echo(f"Backup available at: {plan.backup_dir}")
        return
    typer.echo(f"✅ RKE2 {plan.role.value} uninstall completed successfully!")
    typer.echo(f"Backup available at: {plan.backup_dir}")


def uninstall_cmd(role: Optional[str] = typer.Option(None, "--role", help="Node role (server|agent)")):
    """Back up configuration and uninstall RKE2 for the given role (no prompt)."""
    try:
        node_role = NodeRole.parse(role)
    except RKE2Error as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=e.exit_code)
    run_uninstall(UninstallRequest(role=node_role, force=True))


def uninstaller_cmd(
    role: Optional[str] = typer.Option(None, "--role", help="Node role (auto-detected if not specified)"),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompts"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without executing"),
    backup_dir: Optional[Path] = typer.Option(
        None, "--backup-dir", help="Custom backup directory (default: /tmp/rke2-backup-*)"
    ),
    clean_data: bool = typer.Option(
        False, "--clean-data", help="Also remove data directories (WARNING: irreversible)"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """
    RKE2 Uninstaller.

    Examples:

      rke2-uninstaller

      rke2-uninstaller --role server --force

      rke2-uninstaller --dry-run --clean-data
    """
    log_settings = get_settings().logging
    if dry_run:
        # dry run writes nothing, not even a log file
        log_settings = log_settings.model_copy(update={"file": None})
    setup_logging(debug, log_settings)
    try:
        node_role = NodeRole.parse(role) if role else None
    except RKE2Error as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    run_uninstall(UninstallRequest(
        role=node_role,
        force=force,
        dry_run=dry_run,
        backup_dir=backup_dir,
        clean_data=clean_data,
    ))
