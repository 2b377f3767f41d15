"""Tests covering the utilities modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from postier.utils import file_io, logging as logging_utils


@pytest.fixture
def restore_root_logger(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def test_read_text_detects_bom_and_normalizes_newlines(tmp_path: Path) -> None:
    target = tmp_path / "utf16.txt"
    target.write_bytes("Line1\r\nLine2".encode("utf-16"))

    assert file_io.read_text(target) == "Line1\nLine2"


def test_read_text_strips_utf8_bom(tmp_path: Path) -> None:
    target = tmp_path / "bom.postier"
    target.write_bytes(b"\xef\xbb\xbf{\"url\": \"x\"}\r")

    assert file_io.read_text(target) == '{"url": "x"}\n'


def test_write_text_creates_parents_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "dir" / "a.postier"

    returned = file_io.write_text(target, "{}\n")

    assert returned == target
    assert target.read_text(encoding="utf-8") == "{}\n"
    assert [item.name for item in target.parent.iterdir()] == ["a.postier"]


def test_write_text_replaces_existing_content(tmp_path: Path) -> None:
    target = tmp_path / "a.postier"
    target.write_text("old", encoding="utf-8")

    file_io.write_text(target, "new")

    assert target.read_text(encoding="utf-8") == "new"


def test_resolve_level_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("POSTIER_LOG_LEVEL", raising=False)
    assert logging_utils.resolve_level(False) == logging.INFO
    assert logging_utils.resolve_level(True) == logging.DEBUG

    monkeypatch.setenv("POSTIER_LOG_LEVEL", "warning")
    assert logging_utils.resolve_level(True) == logging.WARNING

    monkeypatch.setenv("POSTIER_LOG_LEVEL", "chatty")
    assert logging_utils.resolve_level(False) == logging.INFO


def test_setup_logging_writes_to_rotating_file(tmp_path: Path, restore_root_logger: None) -> None:
    log_path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path / "logs", console=False)

    logging.getLogger("postier.test").info("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "logs" / "postier.log"
    assert logging_utils.get_log_path() == log_path
    assert "hello from test" in log_path.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_is_idempotent_unless_forced(tmp_path: Path, restore_root_logger: None) -> None:
    first = logging_utils.setup_logging(log_dir=tmp_path / "one", console=False)
    second = logging_utils.setup_logging(log_dir=tmp_path / "two", console=False)
    forced = logging_utils.setup_logging(log_dir=tmp_path / "two", console=False, force=True)

    assert second == first
    assert forced == tmp_path / "two" / "postier.log"


def test_setup_logging_uses_env_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logger: None
) -> None:
    monkeypatch.setenv("POSTIER_LOG_DIR", str(tmp_path / "env-logs"))

    log_path = logging_utils.setup_logging(console=False)

    assert log_path.parent == tmp_path / "env-logs"
