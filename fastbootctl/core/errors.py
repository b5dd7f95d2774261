"""Domain-specific errors for fastbootctl."""

from __future__ import annotations


class FastbootError(Exception):
    """Base error for fastbootctl."""


class ConfigError(FastbootError):
    """Raised when the configuration file cannot be read or fails validation."""


class SetupError(FastbootError):
    """Raised when a USB device does not expose the expected fastboot topology."""


class UsbConnectionError(FastbootError):
    """Raised when no visible USB device matches the bound serial number."""

    def __init__(self, message: str = "Could not find device among visible USB devices") -> None:
        super().__init__(message)


class UsbTransferError(FastbootError):
    """Raised when the host USB stack fails a transfer or an open/claim call."""


class DeviceError(FastbootError):
    """Raised when the bootloader fails a command or violates a transfer expectation."""

    def __init__(self, status: str, message: str) -> None:
        super().__init__(f"Bootloader replied with {status}: {message}")
        self.status = status
        self.message = message


class ProtocolError(FastbootError):
    """Raised on malformed response frames."""


class BusyError(FastbootError):
    """Raised when a command is issued while another one is still in flight."""


class ParseError(FastbootError):
    """Raised when a script line cannot be parsed into an instruction."""


class ArgError(FastbootError):
    """Raised when an instruction lacks a required argument or names a missing file."""


class UnsupportedCommandError(FastbootError):
    """Raised for recognised commands that have no implementation."""


class DeviceSelectionError(FastbootError):
    """Raised when device matching cannot resolve a single target."""
