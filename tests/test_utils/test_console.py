"""Tests for the console log formatter."""

import logging
from datetime import timezone

from bolt_server.utils.console import COLORS, ColorfulFormatter


def _record(msg: str, *args, name: str = "bolt_server.server", level: int = logging.INFO):
    return logging.LogRecord(name, level, __file__, 1, msg, args, None)


def test_plain_format_has_aligned_fields() -> None:
    formatter = ColorfulFormatter(use_colors=False, tz=timezone.utc)

    line = formatter.format(_record("<<< %s %s -> %d", "POST", "/ssh/run_command", 200))

    timestamp, level, component, message = [part.strip() for part in line.split("|")]
    assert level == "INFO"
    assert component == "server"
    assert message == "<<< POST /ssh/run_command -> 200"
    assert "\033[" not in line


def test_colors_highlight_routes_targets_and_errors() -> None:
    formatter = ColorfulFormatter(use_colors=True)

    line = formatter.format(
        _record("command on root@node1:22 -> 503 POST /ssh/run_command [12.5ms]")
    )

    assert f"{COLORS['bright_cyan']}POST /ssh/run_command{COLORS['reset']}" in line
    assert f"{COLORS['bright_magenta']}root@node1:22{COLORS['reset']}" in line
    assert f"{COLORS['bright_red']}503{COLORS['reset']}" in line
    assert f"{COLORS['bright_yellow']}12.5ms{COLORS['reset']}" in line


def test_success_status_not_highlighted() -> None:
    formatter = ColorfulFormatter(use_colors=True)

    line = formatter.format(_record("<<< GET /health -> 200"))

    assert f"{COLORS['bright_red']}200" not in line


def test_component_color_by_package() -> None:
    formatter = ColorfulFormatter(use_colors=True)

    line = formatter.format(_record("x", name="bolt_server.transports.ssh"))

    assert f"{COLORS['bright_magenta']}transports.ssh" in line


def test_exception_appended() -> None:
    formatter = ColorfulFormatter(use_colors=False)
    try:
        raise ValueError("boom")
    except ValueError:
        import sys

        record = logging.LogRecord("bolt_server", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    assert "ValueError: boom" in formatter.format(record)
