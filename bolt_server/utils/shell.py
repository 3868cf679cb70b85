"""Shell and PowerShell quoting utilities."""

import base64
import shlex


def quote_path(path: str) -> str:
    """Safely quote a POSIX path for shell commands.

    Args:
        path: File system path to quote

    Returns:
        Shell-safe quoted path
    """
    return shlex.quote(path)


def quote_arg(arg: str) -> str:
    """Safely quote a POSIX shell argument."""
    return shlex.quote(arg)


def quote_powershell(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal.

    Args:
        value: Literal text

    Returns:
        The value wrapped in single quotes, embedded quotes doubled
    """
    return "'" + value.replace("'", "''") + "'"


def encode_powershell(script: str) -> str:
    """Encode a script for ``powershell.exe -EncodedCommand``."""
    return base64.b64encode(script.encode("utf-16-le")).decode("ascii")


def powershell_command(script: str) -> str:
    """Command line running a script non-interactively."""
    return (
        "powershell.exe -NoProfile -NonInteractive -ExecutionPolicy Bypass "
        f"-EncodedCommand {encode_powershell(script)}"
    )
