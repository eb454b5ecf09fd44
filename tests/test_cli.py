"""
Tests for the ttyml command line entry point and logging setup.
"""

import logging
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from ttyml import __version__
from ttyml.config import ENV_LOG_LEVEL, ENV_TIMEOUT, ENV_USER_AGENT, ENV_VERIFY_TLS
from ttyml.error_handler import TtymlLogicError, UnsupportedMediaTypeError
from ttyml.ttyml import configure_logging, main

URL = "http://h/start"
TRY_HELP = "Try `ttyml --help' for more information"


@pytest.fixture(autouse=True)  # type: ignore[misc]
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep TTYML_* variables and package log handlers from leaking between tests."""
    for name in (ENV_LOG_LEVEL, ENV_TIMEOUT, ENV_USER_AGENT, ENV_VERIFY_TLS):
        monkeypatch.delenv(name, raising=False)
    yield
    package_logger = logging.getLogger("ttyml")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


class TestArguments:
    """Tests for argument parsing."""

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"])
        assert excinfo.value.code == 0
        assert capsys.readouterr().out == f"ttyml {__version__}\n"

    def test_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["--help"])
        assert excinfo.value.code == 0
        out = capsys.readouterr().out
        assert out.startswith("usage: ttyml")
        assert "URL" in out

    @pytest.mark.parametrize(
        "argv", [[], ["--bogus", URL], [URL, "http://h/other"]], ids=["missing", "unknown", "extra"]
    )
    def test_usage_errors(self, argv: list, capsys: pytest.CaptureFixture[str]) -> None:
        """Bad usage exits 1 with the usage line and a pointer to --help."""
        with pytest.raises(SystemExit) as excinfo:
            main(argv)
        assert excinfo.value.code == 1
        err = capsys.readouterr().err
        assert err.startswith("usage: ttyml")
        assert TRY_HELP in err

    def test_flags_become_config(self) -> None:
        with patch("ttyml.ttyml.configure_logging"), patch(
            "ttyml.ttyml.run_session", return_value=0
        ) as run:
            assert main(["--debug", "--insecure", "--no-tty-size", URL]) == 0
        args, kwargs = run.call_args
        assert args == (URL,)
        config = kwargs["config"]
        assert config.log_level == "DEBUG"
        assert config.verify_tls is False
        assert config.send_terminal_size is False

    def test_defaults_when_flags_absent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_LOG_LEVEL, "error")
        with patch("ttyml.ttyml.configure_logging") as configure, patch(
            "ttyml.ttyml.run_session", return_value=0
        ) as run:
            main([URL])
        config = run.call_args.kwargs["config"]
        assert config.log_level == "ERROR"
        assert config.verify_tls is True
        configure.assert_called_once_with("ERROR", None)

    def test_config_file(self, tmp_path: Path) -> None:
        path = tmp_path / "ttyml.yaml"
        path.write_text("timeout: 3\nuser_agent: probe/9\n", encoding="utf-8")
        with patch("ttyml.ttyml.configure_logging"), patch(
            "ttyml.ttyml.run_session", return_value=0
        ) as run:
            main(["--config", str(path), URL])
        config = run.call_args.kwargs["config"]
        assert config.timeout == 3.0
        assert config.user_agent == "probe/9"

    def test_bad_config_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "ttyml.yaml"
        path.write_text("timeout: -1\n", encoding="utf-8")
        with patch("ttyml.ttyml.run_session") as run:
            assert main(["--config", str(path), URL]) == 1
        run.assert_not_called()
        assert "Error: timeout must be positive" in capsys.readouterr().err

    def test_missing_config_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("ttyml.ttyml.run_session") as run:
            assert main(["--config", str(tmp_path / "absent.json"), URL]) == 1
        run.assert_not_called()
        assert "Configuration file not found" in capsys.readouterr().err

    def test_unusable_log_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A directory cannot be opened as the log file."""
        with patch("ttyml.ttyml.run_session") as run:
            assert main(["--log-file", str(tmp_path), URL]) == 1
        run.assert_not_called()
        assert "Error: cannot open log file" in capsys.readouterr().err


class TestExitStatus:
    """Tests for error reporting at the entry point."""

    def test_fatal_ttyml_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        error = UnsupportedMediaTypeError("server responded with unsupported content type 'text/html'")
        with patch("ttyml.ttyml.run_session", side_effect=error):
            assert main([URL]) == 1
        assert capsys.readouterr().err == (
            "Fatal error: server responded with unsupported content type 'text/html'\n"
        )

    def test_logic_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("ttyml.ttyml.run_session", side_effect=TtymlLogicError("style stack underflow")):
            assert main([URL]) == 1
        assert "Fatal error: style stack underflow" in capsys.readouterr().err

    def test_unexpected_exception(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Anything else is still a one-line diagnostic, not a traceback."""
        with patch("ttyml.ttyml.run_session", side_effect=RuntimeError("surprise")):
            assert main([URL]) == 1
        err = capsys.readouterr().err
        assert "Fatal error: surprise" in err
        assert "Traceback" not in err

    def test_keyboard_interrupt(self) -> None:
        with patch("ttyml.ttyml.run_session", side_effect=KeyboardInterrupt):
            assert main([URL]) == 130


class TestEndToEnd:
    """main() against an in-memory server."""

    def test_renders_document(
        self, make_server, ttyml_response, document, monkeypatch, capsys
    ) -> None:
        server = make_server(ttyml_response(document("<line>hello</line>")))
        monkeypatch.setattr("ttyml.context.HttpTransport", server.factory)
        assert main(["--no-tty-size", URL]) == 0
        assert capsys.readouterr().out == "hello\n"
        assert server.requests[0].url == URL

    def test_unsupported_media_type(
        self, make_server, ttyml_response, monkeypatch, capsys
    ) -> None:
        server = make_server(ttyml_response("<html/>", content_type="text/html"))
        monkeypatch.setattr("ttyml.context.HttpTransport", server.factory)
        assert main(["--no-tty-size", URL]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Fatal error: server responded with unsupported content type 'text/html'" in captured.err

    def test_user_agent_from_environment(
        self, make_server, ttyml_response, document, monkeypatch
    ) -> None:
        server = make_server(ttyml_response(document("")))
        monkeypatch.setattr("ttyml.context.HttpTransport", server.factory)
        monkeypatch.setenv(ENV_USER_AGENT, "env-agent/1")
        assert main(["--no-tty-size", URL]) == 0
        assert server.configs[0].user_agent == "env-agent/1"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_level_and_stderr_handler(self) -> None:
        configure_logging("INFO")
        package_logger = logging.getLogger("ttyml")
        assert package_logger.level == logging.INFO
        assert len(package_logger.handlers) == 1

    def test_reconfigure_replaces_handlers(self, tmp_path: Path) -> None:
        configure_logging("DEBUG", str(tmp_path / "a.log"))
        configure_logging("DEBUG", str(tmp_path / "b.log"))
        assert len(logging.getLogger("ttyml").handlers) == 2

    def test_log_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "ttyml.log"
        configure_logging("DEBUG", str(log_file))
        logging.getLogger("ttyml.context").debug("fetching something")
        for handler in logging.getLogger("ttyml").handlers:
            handler.flush()
        content = log_file.read_text(encoding="utf-8")
        assert "ttyml.context - DEBUG - fetching something" in content
