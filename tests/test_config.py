"""Tests for configuration and the command-line entry point."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from hotloop import hotloop_main
from hotloop.config import DEFAULT_IGNORED_DIRS, Config
from hotloop.errors import ConfigError, WatchSetupError
from hotloop.hotloop_main import build_parser, config_from_args, main


class TestConfig:
    """Config defaults and helpers."""

    def test_defaults(self, tmp_path):
        config = Config(root=tmp_path)
        assert config.debounce == 0.5
        assert config.extensions == (".go",)
        assert config.manifests == ("go.mod", "go.sum")
        assert ".git" in config.ignored_dirs
        assert "vendor" in config.ignored_dirs
        assert config.recursive is True

    def test_root_is_resolved(self, tmp_path):
        (tmp_path / "sub").mkdir()
        config = Config(root=tmp_path / "sub" / "..")
        assert config.root == tmp_path.resolve()

    def test_artifact_lives_under_root(self, tmp_path):
        config = Config(root=tmp_path)
        assert config.artifact_path.parent == config.root
        assert config.artifact_path.name.startswith(".hotloop-app")
        assert config.staging_path.name == config.artifact_path.name + ".next"

    def test_expand_substitutes_output(self, tmp_path):
        out = tmp_path / "bin"
        assert Config.expand(["go", "build", "-o", "{output}", "."], out) == [
            "go",
            "build",
            "-o",
            str(out),
            ".",
        ]

    def test_build_output_used(self, tmp_path):
        assert Config(root=tmp_path).build_output_used
        assert not Config(root=tmp_path, build_command=["make"]).build_output_used
        assert not Config(root=tmp_path, build_command=[]).build_output_used

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"debounce": 0},
            {"debounce": -1},
            {"kill_timeout": 0},
            {"run_command": []},
            {"extensions": (), "manifests": ()},
            {"build_command": []},
            {"build_command": ["make"], "run_command": ["{output}", "--dev"]},
        ],
    )
    def test_validate_rejects(self, tmp_path, kwargs):
        with pytest.raises(ConfigError):
            Config(root=tmp_path, **kwargs).validate()

    def test_validate_accepts_defaults(self, tmp_path):
        Config(root=tmp_path).validate()


class TestParser:
    """CLI flags map onto Config."""

    def test_defaults(self, tmp_path):
        args = build_parser().parse_args(["--root", str(tmp_path)])
        config = config_from_args(args)

        assert config.root == tmp_path.resolve()
        assert config.build_command == ["go", "build", "-o", "{output}", "."]
        assert config.run_command == ["{output}"]
        assert config.debounce == 0.5
        assert config.verbose is False

    def test_custom_values(self, tmp_path):
        args = build_parser().parse_args(
            [
                "--root", str(tmp_path),
                "--build", "make build OUT={output}",
                "--run", "{output} --port 8080",
                "--debounce", "250",
                "--ext", "rs", ".toml",
                "--ignore", "target", "testdata",
                "--no-recursive",
                "--kill-timeout", "2",
                "-v",
            ]
        )
        config = config_from_args(args)

        assert config.build_command == ["make", "build", "OUT={output}"]
        assert config.run_command == ["{output}", "--port", "8080"]
        assert config.debounce == 0.25
        assert config.extensions == (".rs", ".toml")
        assert config.ignored_dirs == DEFAULT_IGNORED_DIRS + ("target", "testdata")
        assert config.recursive is False
        assert config.kill_timeout == 2.0
        assert config.verbose is True

    def test_empty_build_disables_build_step(self, tmp_path):
        args = build_parser().parse_args(
            ["--root", str(tmp_path), "--build", "", "--run", "python app.py"]
        )
        assert config_from_args(args).build_command == []

    def test_empty_build_with_artifact_run_rejected(self, tmp_path):
        args = build_parser().parse_args(["--root", str(tmp_path), "--build", ""])
        with pytest.raises(ConfigError, match="never writes it"):
            config_from_args(args)

    def test_build_without_output_accepts_plain_run(self, tmp_path):
        Config(root=tmp_path, build_command=["make"], run_command=["./server"]).validate()

    def test_invalid_debounce_rejected(self, tmp_path):
        args = build_parser().parse_args(["--root", str(tmp_path), "--debounce", "0"])
        with pytest.raises(ConfigError):
            config_from_args(args)


class TestMain:
    """Exit codes of the entry point."""

    def test_normal_shutdown_returns_zero(self, tmp_path):
        with patch.object(hotloop_main, "Orchestrator") as mock_orch:
            mock_orch.return_value.run.return_value = 0
            assert main(["--root", str(tmp_path)]) == 0

        config = mock_orch.call_args.args[0]
        assert isinstance(config, Config)
        assert config.root == Path(tmp_path).resolve()

    def test_watch_setup_error_returns_one(self, tmp_path, caplog):
        with patch.object(hotloop_main, "Orchestrator") as mock_orch:
            mock_orch.return_value.run.side_effect = WatchSetupError("gone")
            with caplog.at_level(logging.ERROR, logger="hotloop"):
                assert main(["--root", str(tmp_path)]) == 1

        assert "Cannot watch" in caplog.text

    def test_bad_config_returns_one(self, tmp_path):
        with patch.object(hotloop_main, "Orchestrator") as mock_orch:
            assert main(["--root", str(tmp_path), "--debounce", "-5"]) == 1
        mock_orch.assert_not_called()
