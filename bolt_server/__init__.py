"""bolt_server: HTTP dispatch of remote tasks, commands, scripts and uploads."""

__version__ = "0.1.0"
