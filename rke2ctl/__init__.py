"""rke2ctl - install, inspect and remove a single RKE2 node."""

__version__ = "0.1.0"
