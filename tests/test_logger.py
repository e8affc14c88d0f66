"""Tests for logger.py: setup_logging() and JsonFormatter.

Covers:
- CLI mode (stderr handler, optional file handler)
- MCP mode (file only, default under the cache directory)
- Level selection from BLACKBOOK_LOG_LEVEL and --debug
- JSON formatter output
- Third-party logger silencing

Strategy: logging.basicConfig is patched, since pytest's log capture
already installs root handlers and would turn a real call into a no-op.
"""

import json
import logging
import sys
from unittest.mock import patch

from blackbook.logger import JsonFormatter, default_log_file, setup_logging


def _kwargs(mock_basic) -> dict:
    mock_basic.assert_called_once()
    return mock_basic.call_args[1]


class TestSetupLogging:
    @patch("blackbook.logger.logging.basicConfig")
    def test_cli_logs_to_stderr_at_info(self, mock_basic):
        setup_logging(mode="cli")
        kwargs = _kwargs(mock_basic)
        [handler] = kwargs["handlers"]
        assert handler.stream is sys.stderr
        assert kwargs["level"] == logging.INFO

    @patch("blackbook.logger.logging.basicConfig")
    def test_cli_with_log_file(self, mock_basic, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))
        handlers = _kwargs(mock_basic)["handlers"]
        file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
        assert len(handlers) == 2
        assert len(file_handlers) == 1
        for h in file_handlers:
            h.close()

    @patch("blackbook.logger.logging.basicConfig")
    def test_mcp_logs_to_file_at_warning(self, mock_basic, tmp_path):
        log_file = str(tmp_path / "logs" / "mcp.log")
        setup_logging(mode="mcp", log_file=log_file)
        kwargs = _kwargs(mock_basic)
        assert kwargs["filename"] == log_file
        assert kwargs["level"] == logging.WARNING
        assert (tmp_path / "logs").is_dir()

    @patch("blackbook.logger.logging.basicConfig")
    def test_mcp_default_file_in_cache_dir(self, mock_basic, cache_dir):
        setup_logging(mode="mcp")
        assert _kwargs(mock_basic)["filename"] == str(cache_dir / "blackbook.log")

    def test_log_file_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BLACKBOOK_LOG_FILE", str(tmp_path / "env.log"))
        assert default_log_file() == str(tmp_path / "env.log")

    @patch("blackbook.logger.logging.basicConfig")
    def test_env_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("BLACKBOOK_LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert _kwargs(mock_basic)["level"] == logging.ERROR

    @patch("blackbook.logger.logging.basicConfig")
    def test_debug_beats_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("BLACKBOOK_LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert _kwargs(mock_basic)["level"] == logging.DEBUG

    @patch("blackbook.logger.logging.basicConfig")
    def test_json_format(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        [handler] = _kwargs(mock_basic)["handlers"]
        assert isinstance(handler.formatter, JsonFormatter)

    @patch("blackbook.logger.logging.basicConfig")
    def test_third_party_silenced(self, _mock_basic):
        setup_logging(mode="cli")
        assert logging.getLogger("mcp").level == logging.WARNING
        assert logging.getLogger("charset_normalizer").level == logging.WARNING


class TestJsonFormatter:
    def _record(self, **kw) -> logging.LogRecord:
        defaults = dict(
            name="blackbook.sync",
            level=logging.INFO,
            pathname="x.py",
            lineno=1,
            msg="Synced %d file(s)",
            args=(2,),
            exc_info=None,
        )
        defaults.update(kw)
        return logging.LogRecord(**defaults)

    def test_fields(self):
        data = json.loads(JsonFormatter().format(self._record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "blackbook.sync"
        assert data["msg"] == "Synced 2 file(s)"
        assert "ts" in data
        assert "exc" not in data

    def test_exception(self):
        try:
            raise OSError("disk full")
        except OSError:
            exc_info = sys.exc_info()
        data = json.loads(JsonFormatter().format(self._record(exc_info=exc_info)))
        assert "OSError: disk full" in data["exc"]
