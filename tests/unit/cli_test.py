"""Tests for the command line entry point."""

from __future__ import annotations

from functools import partial
from pathlib import Path

import pytest

import fireboom.cli.main as cli
from fireboom.configs.registry import KEY_DEV_MODE, KEY_WATCH, KEY_WEB_PORT
from fireboom.server import Context


@pytest.fixture(autouse=True)
def quiet_context(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Context", partial(Context, console_logging=False))


class TestParser:
    def test_dev_flags(self) -> None:
        args = cli.create_parser().parse_args(["dev", "--web-port", "8080", "--enable-auth", "--workdir", "/tmp/x"])
        assert args.command == "dev"
        assert args.web_port == 8080
        assert args.enable_auth is True
        assert args.workdir == "/tmp/x"

    def test_build_has_no_server_flags(self) -> None:
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["build", "--web-port", "1"])

    def test_no_command_prints_help(self, capsys) -> None:
        assert cli.app([]) == 0
        assert "dev" in capsys.readouterr().out


class TestBuild:
    def test_writes_configuration(self, workdir: Path, capsys) -> None:
        assert cli.app(["build", "--workdir", str(workdir)]) == 0

        assert (workdir / "exported/generated/fireboom.config.json").exists()
        assert "Build completed!" in capsys.readouterr().out


class TestServe:
    @pytest.fixture
    def served(self, monkeypatch):
        calls: list[dict] = []

        def run(app, **kwargs) -> None:
            calls.append({"app": app, **kwargs})

        monkeypatch.setattr(cli.uvicorn, "run", run)
        yield calls
        for call in calls:
            call["app"].state.context.close()

    def test_dev_builds_and_watches(self, workdir: Path, served: list) -> None:
        assert cli.app(["dev", "--workdir", str(workdir), "--web-port", "9200"]) == 0

        call = served[0]
        assert call["port"] == 9200
        assert call["log_config"] is None
        context = call["app"].state.context
        assert context.registry.get_bool(KEY_DEV_MODE) is True
        assert context.registry.get_bool(KEY_WATCH) is True
        assert context.registry.get_int(KEY_WEB_PORT) == 9200
        assert context.supervisor.started is True

    def test_start_uses_existing_configuration(self, workdir: Path, served: list) -> None:
        config = workdir / "exported/generated/fireboom.config.json"
        config.parent.mkdir(parents=True)
        config.write_text("{}", encoding="utf-8")

        assert cli.app(["start", "--workdir", str(workdir)]) == 0

        assert config.read_text(encoding="utf-8") == "{}"
        assert served[0]["port"] == cli.DEFAULT_WEB_PORT
