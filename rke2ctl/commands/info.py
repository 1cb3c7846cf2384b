from typing import Optional

import typer

from rke2ctl.errors import RKE2Error
from rke2ctl.modules.rke2 import host as rke2_host
from rke2ctl.modules.rke2.health import render_info
from rke2ctl.modules.rke2.models import NodeRole


def info_cmd(role: Optional[str] = typer.Option(None, "--role", help="Node role (server|agent)")):
    """Print system, installation, service and data directory information."""
    try:
        node_role = NodeRole.parse(role)
    except RKE2Error as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    typer.echo(render_info(node_role, rke2_host.current_host()), nl=False)
