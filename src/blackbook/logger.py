"""Logging setup for the blackbook CLI and MCP server.

The CLI logs to stderr (plus an optional file); the MCP server logs only
to a file because stdout carries the JSON-RPC stream.
"""

import json
import logging
import os
import sys

from .paths import get_cache_dir


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log files read by other tools.

    Keys are ts, level, logger and msg, plus exc when the record carries
    exception info.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    fmt = (
        "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
        if with_name
        else "[%(asctime)s] [%(levelname)s] %(message)s"
    )
    return logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")


def default_log_file() -> str:
    """Return the log file used in MCP mode when none is given."""
    return os.getenv(
        "BLACKBOOK_LOG_FILE", str(get_cache_dir() / "blackbook.log")
    )


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" for file logging (never stdout), "cli" for stderr logging.
        debug: If True, overrides BLACKBOOK_LOG_LEVEL to DEBUG.
        log_file: Custom log file path (overrides BLACKBOOK_LOG_FILE env var).
        debug_format: "text" (default) or "json" for structured output.

    Environment variables:
        BLACKBOOK_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: WARNING for MCP mode, INFO for CLI mode.
        BLACKBOOK_LOG_FILE: Custom log file path for MCP mode.
                  Default: <cache dir>/blackbook.log
    """
    default_level = "WARNING" if mode == "mcp" else "INFO"
    env_level = os.getenv("BLACKBOOK_LOG_LEVEL", default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    if mode == "mcp":
        # stdout carries JSON-RPC, so MCP mode only ever logs to a file
        final_log_file = log_file or default_log_file()
        os.makedirs(os.path.dirname(final_log_file) or ".", exist_ok=True)
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            filename=final_log_file,
            filemode="a",
        )
    else:
        handlers: list[logging.Handler] = []
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            _make_formatter(debug_format, with_name=False)
        )
        handlers.append(stderr_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(
                _make_formatter(debug_format, with_name=True)
            )
            handlers.append(file_handler)

        logging.basicConfig(
            level=log_level,
            handlers=handlers,
        )

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("mcp").setLevel(logging.WARNING)
        logging.getLogger("charset_normalizer").setLevel(logging.WARNING)
