"""File IO helpers used by the local storage backend."""

from __future__ import annotations

import codecs
import locale
import os
import tempfile
from pathlib import Path

__all__ = ["read_text", "write_text"]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
}


def read_text(path: Path | str, *, encoding: str | None = None) -> str:
    """Read a text file, detecting BOMs and normalizing newlines to ``\\n``."""

    raw = Path(path).read_bytes()
    text = raw.decode(encoding or _detect_encoding(raw))
    if text.startswith("\ufeff"):
        text = text[1:]
    if "\r" in text:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text


def write_text(path: Path | str, content: str, *, encoding: str = "utf-8") -> Path:
    """Write ``content`` through a sibling temp file and an atomic replace.

    Missing parent directories are created first.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            os.unlink(tmp_name)
    return target


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding
    preferred = locale.getpreferredencoding(False) or "utf-8"
    for candidate in dict.fromkeys(("utf-8", preferred, "latin-1")):
        try:
            raw.decode(candidate)
        except UnicodeDecodeError:
            continue
        return candidate
    return "utf-8"
