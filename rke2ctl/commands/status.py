from typing import Optional

import typer

from rke2ctl.errors import RKE2Error
from rke2ctl.modules.rke2 import host as rke2_host
from rke2ctl.modules.rke2.health import render_status
from rke2ctl.modules.rke2.models import NodeRole


def status_cmd(role: Optional[str] = typer.Option(None, "--role", help="Node role (server|agent)")):
    """Show the service status, version and configuration files of a node."""
    try:
        node_role = NodeRole.parse(role)
    except RKE2Error as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    status = render_status(node_role, rke2_host.current_host())
    typer.echo(status['text'], nl=False)
    if not status['installed']:
        raise typer.Exit(code=1)
