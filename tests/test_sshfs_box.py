"""Tests for the sshfs-box executable (argument handling and exit codes)."""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from helpers.sshfs import MountEntry, ReconcileResult

SCRIPT = Path(__file__).resolve().parent.parent / "services" / "sshfs-box.py"


@pytest.fixture(scope="module")
def box():
    """Import services/sshfs-box.py as a module."""
    spec = importlib.util.spec_from_file_location("sshfs_box", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


CONFIG = {"urls": ["u@h:/x"], "folder": "/m"}


class TestParser:
    """Tests for CLI flags."""

    @pytest.mark.parametrize("flag", ["-c", "--config", "--configure", "--settings"])
    def test_config_aliases(self, box, flag: str) -> None:
        assert box.build_parser().parse_args([flag]).config is True

    def test_defaults(self, box) -> None:
        args = box.build_parser().parse_args([])
        assert (args.config, args.list, args.yes, args.verbose) == (False, False, False, False)


class TestMain:
    """Tests for the main flow."""

    def test_config_abort_exits_nonzero(self, box, config_path: Path) -> None:
        with patch.object(box, "resolve_config", return_value=None):
            assert box.main([]) == 1

    def test_config_flag_forces_editor(self, box, config_path: Path) -> None:
        with patch.object(box, "resolve_config", return_value=None) as mock_resolve:
            box.main(["--config"])
        mock_resolve.assert_called_once_with(config_path, force_edit=True)

    def test_list_does_not_prompt(self, box, config_path: Path, capsys: pytest.CaptureFixture) -> None:
        with patch.object(box, "resolve_config", return_value=CONFIG), \
             patch.object(box, "read_mount_table", return_value=["u@h:/x on /m/u@h--x type fuse.sshfs (rw)"]), \
             patch.object(box, "prompt_sshfs") as mock_prompt:
            assert box.main(["--list"]) == 0
        mock_prompt.assert_not_called()
        out = capsys.readouterr().out
        assert "u@h:/x" in out
        assert "mounted" in out

    def test_missing_binaries(self, box, config_path: Path) -> None:
        with patch.object(box, "resolve_config", return_value=CONFIG), \
             patch.object(box, "missing_binaries", return_value=["sshfs"]), \
             patch.object(box, "prompt_sshfs") as mock_prompt:
            assert box.main([]) == 1
        mock_prompt.assert_not_called()

    @pytest.mark.parametrize(
        "result, code",
        [
            (ReconcileResult(), 0),
            (None, 0),
            (ReconcileResult(failed=[MountEntry("u@h:/x", Path("/m/u@h--x"))]), 1),
        ],
    )
    def test_exit_code_follows_result(self, box, config_path: Path, result, code: int) -> None:
        with patch.object(box, "resolve_config", return_value=CONFIG), \
             patch.object(box, "missing_binaries", return_value=[]), \
             patch.object(box, "prompt_sshfs", return_value=result) as mock_prompt:
            assert box.main([]) == code
        mock_prompt.assert_called_once_with(CONFIG, confirm_kill=True)

    def test_yes_skips_kill_confirmation(self, box, config_path: Path) -> None:
        with patch.object(box, "resolve_config", return_value=CONFIG), \
             patch.object(box, "missing_binaries", return_value=[]), \
             patch.object(box, "prompt_sshfs", return_value=ReconcileResult()) as mock_prompt:
            box.main(["--yes"])
        assert mock_prompt.call_args.kwargs == {"confirm_kill": False}


class TestLogging:
    """Tests for --verbose log routing."""

    @pytest.fixture
    def restore_root_logger(self):
        root = logging.getLogger()
        level, handlers = root.level, list(root.handlers)
        yield root
        root.handlers[:] = handlers
        root.setLevel(level)

    @pytest.mark.parametrize("argv, level", [(["-v", "--list"], logging.DEBUG), (["--list"], logging.WARNING)])
    def test_verbose_sets_root_level(self, box, config_path: Path, restore_root_logger, argv, level: int) -> None:
        with patch.object(box, "resolve_config", return_value=CONFIG), \
             patch.object(box, "read_mount_table", return_value=[]):
            assert box.main(argv) == 0
        assert restore_root_logger.level == level
        assert any(type(h).__name__ == "RichHandler" for h in restore_root_logger.handlers)
