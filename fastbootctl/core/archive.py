"""Zip archive access for factory images."""

from __future__ import annotations

import io
import re
import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO

from fastbootctl.core.errors import ArgError

_SEPARATOR_RE = re.compile(r"[\\/]")


def basename(name: str) -> str:
    return _SEPARATOR_RE.split(name)[-1]


def find_entry(
    entries: Sequence[zipfile.ZipInfo], filename: str, *, exact: bool = False
) -> zipfile.ZipInfo:
    """Find an entry by basename, or by its full path inside the zip when `exact` is set."""
    for entry in entries:
        name = entry.filename if exact else basename(entry.filename)
        if name == filename:
            return entry
    raise ArgError(f"{filename} not found in zip")


class ZipArchive:
    def __init__(self, source: str | Path | bytes | BinaryIO) -> None:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)
        try:
            self._zip = zipfile.ZipFile(source)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ArgError(f"Could not open zip archive: {exc}") from exc

    def __enter__(self) -> ZipArchive:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def entries(self) -> list[zipfile.ZipInfo]:
        return [info for info in self._zip.infolist() if not info.is_dir()]

    def read_bytes(self, entry: zipfile.ZipInfo) -> bytes:
        return self._zip.read(entry)

    def read_text(self, entry: zipfile.ZipInfo) -> str:
        return self.read_bytes(entry).decode("utf-8")

    def open_nested(self, entry: zipfile.ZipInfo) -> ZipArchive:
        return ZipArchive(self.read_bytes(entry))
