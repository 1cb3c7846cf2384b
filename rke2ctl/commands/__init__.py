from . import info, install, status, uninstall

__all__ = ['info', 'install', 'status', 'uninstall']
