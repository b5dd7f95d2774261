"""Stable public API for building tooling on top of fastbootctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from fastbootctl.core.errors import (
    ArgError,
    BusyError,
    ConfigError,
    DeviceError,
    DeviceSelectionError,
    FastbootError,
    ParseError,
    ProtocolError,
    SetupError,
    UnsupportedCommandError,
    UsbConnectionError,
    UsbTransferError,
)
from fastbootctl.core.client import FastbootClient
from fastbootctl.core.config import Settings
from fastbootctl.core.model import (
    Command,
    DetectedDevice,
    Instruction,
    InstructionOptions,
    ResponsePacket,
    ResponseStatus,
    Slot,
)
from fastbootctl.core.service import FastbootService
from fastbootctl.transports.base import UsbHost

__all__ = [
    "FastbootError",
    "ArgError",
    "BusyError",
    "ConfigError",
    "DeviceError",
    "DeviceSelectionError",
    "ParseError",
    "ProtocolError",
    "SetupError",
    "UnsupportedCommandError",
    "UsbConnectionError",
    "UsbTransferError",
    "Command",
    "DetectedDevice",
    "Instruction",
    "InstructionOptions",
    "ResponsePacket",
    "ResponseStatus",
    "Slot",
    "Settings",
    "FastbootClient",
    "Client",
]


class Client:
    """Public client for driving fastboot devices.

    A `Client` instance wraps device discovery, the USB binding, the protocol
    engine and the flash-all orchestrator behind a stable API intended for
    third-party tools (GUI/TUI/services/scripts).
    """

    def __init__(
        self,
        *,
        host: UsbHost | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._service = FastbootService(host=host, settings=settings)

    def list_devices(self) -> list[DetectedDevice]:
        return self._service.list_devices()

    def open(self, *, serial: str | None = None) -> FastbootClient:
        return self._service.open_client(serial)

    def get_var(self, name: str, *, serial: str | None = None) -> str:
        return self._service.get_var(name, serial)

    def parse_script(self, script_text: str, *, flash_all: bool = False) -> list[Instruction]:
        return self._service.parse_script(script_text, flash_all=flash_all)

    def flash_all(self, archive_path: str | Path, *, serial: str | None = None) -> list[Instruction]:
        return self._service.flash_all(Path(archive_path), serial)

    def run_script(
        self,
        script_text: str,
        archive_path: str | Path,
        *,
        serial: str | None = None,
    ) -> list[Instruction]:
        return self._service.run_script(script_text, Path(archive_path), serial)
