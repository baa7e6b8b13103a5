# tests/unit/logging/test_unit_handlers.py — v2
"""Tests for logging/handlers.py — file rotation handler."""

from __future__ import annotations

import pytest

from docspublisher.logging.handlers import create_rotating_handler, parse_size


class TestParseSize:
    def test_mb(self):
        assert parse_size("10MB") == 10 * 1024 * 1024

    def test_bytes(self):
        assert parse_size("512B") == 512

    def test_case_insensitive(self):
        assert parse_size("1gb") == 1024 * 1024 * 1024

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("10bytes")


class TestCreateRotatingHandler:
    def test_creates_parent_dir(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "a" / "b" / "run.log", "1KB", 2)
        try:
            assert (tmp_path / "a" / "b").is_dir()
            assert handler.maxBytes == 1024
            assert handler.backupCount == 2
        finally:
            handler.close()
