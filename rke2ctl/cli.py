import typer
import logging
import sys

from rke2ctl.commands import info, install, status, uninstall
from rke2ctl.config import get_settings
from rke2ctl.logging import setup_logging

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

app = typer.Typer(help="RKE2 Installer", context_settings=CONTEXT_SETTINGS, add_completion=False)

uninstaller = typer.Typer(help="RKE2 Uninstaller", context_settings=CONTEXT_SETTINGS, add_completion=False)

# Global debug flag
debug_mode = False

app.command("install")(install.install_cmd)
app.command("uninstall")(uninstall.uninstall_cmd)
app.command("status")(status.status_cmd)
app.command("info")(info.info_cmd)

uninstaller.command()(uninstall.uninstaller_cmd)


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """RKE2 Installer - install, inspect and remove a single RKE2 node."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug, get_settings().logging)
    if debug:
        logging.debug("Debug mode enabled")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
