import logging
from pathlib import Path
from typing import Optional

import typer

from rke2ctl.config import get_settings
from rke2ctl.errors import RKE2Error
from rke2ctl.modules.rke2 import host as rke2_host
from rke2ctl.modules.rke2.core import RKE2NodeInstaller
from rke2ctl.modules.rke2.models import InstallRequest, NodeRole

logger = logging.getLogger("rke2.cli")


def install_cmd(
    role: Optional[str] = typer.Option(None, "--role", help="Node role (server|agent)"),
    channel: Optional[str] = typer.Option(None, "--channel", help="Installation channel (default: stable)"),
    version: Optional[str] = typer.Option(None, "--version", help="Exact RKE2 version, e.g. v1.28.3+rke2r1"),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config.yaml file to copy"),
    server_url: Optional[str] = typer.Option(None, "--server-url", help="Server URL (for agent role)"),
    token: Optional[str] = typer.Option(None, "--token", help="Cluster token (alternative to --token-file)"),
    token_file: Optional[Path] = typer.Option(None, "--token-file", help="Path to token file"),
    cluster_init: bool = typer.Option(False, "--cluster-init", help="Initialize cluster (first server)"),
    auto_swapoff: bool = typer.Option(False, "--auto-swapoff", help="Automatically disable swap if active"),
    force: bool = typer.Option(False, "--force", help="Force reinstall/upgrade even if already installed"),
):
    """
    Install RKE2 and start the service for the given role.

    Examples:

      rke2ctl install --role server --cluster-init

      rke2ctl install --role agent --server-url https://rke2.example:9345 --token-file /root/token
    """
    host = rke2_host.current_host()
    try:
        request = InstallRequest(
            role=NodeRole.parse(role),
            channel=channel or get_settings().installer.default_channel,
            version=version,
            config_path=config,
            server_url=server_url,
            token=token,
            token_file=token_file,
            cluster_init=cluster_init,
            auto_swapoff=auto_swapoff,
            force=force,
        )
        report = RKE2NodeInstaller(host).install(request)
    except RKE2Error as e:
        typer.echo(f"❌ {e}", err=True)
        logger.debug("Install failed", exc_info=True)
        raise typer.Exit(code=e.exit_code)

    typer.echo(f"✅ RKE2 {report.role.value} is installed and {report.activation.service_name} is active.")
    if report.role is NodeRole.SERVER:
        typer.echo(
            f"Kubeconfig: {host.paths.kubeconfig} (set KUBECONFIG or copy to ~/.kube/config)"
        )
