# tests/unit/core/test_unit_process.py — v1
"""Tests for core/process.py."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

from docspublisher.core.process import CommandResult, run_command


class TestRunCommand:
    def test_missing_executable(self, tmp_path):
        result = run_command(["definitely-not-a-real-binary-xyz"], cwd=tmp_path)
        assert result.returncode == 127
        assert not result.ok

    def test_timeout(self):
        with patch(
            "docspublisher.core.process.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["quarto"], 5),
        ):
            result = run_command(["quarto", "render"], timeout_s=5)
        assert result.returncode == 124
        assert "timed out" in result.stderr

    def test_captures_output(self):
        completed = subprocess.CompletedProcess(["git"], 0, stdout="out\n", stderr="")
        with patch("docspublisher.core.process.subprocess.run", return_value=completed):
            result = run_command(["git", "status"])
        assert result.ok
        assert result.stdout == "out\n"
        assert result.args == ("git", "status")


class TestCommandResult:
    def test_tail_prefers_stderr(self):
        result = CommandResult(("x",), 1, "stdout", "a\nb\nc")
        assert result.tail(2) == "b\nc"

    def test_tail_falls_back_to_stdout(self):
        assert CommandResult(("x",), 1, "only out", "").tail() == "only out"
