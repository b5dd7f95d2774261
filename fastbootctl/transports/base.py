"""Host USB capability consumed by the transport binding."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

DIRECTION_IN = "in"
DIRECTION_OUT = "out"


@dataclass(frozen=True)
class UsbEndpoint:
    address: int
    direction: str

    @property
    def number(self) -> int:
        return self.address & 0x0F


@dataclass(frozen=True)
class UsbInterface:
    number: int
    endpoints: tuple[UsbEndpoint, ...]


@dataclass(frozen=True)
class UsbConfiguration:
    value: int
    interfaces: tuple[UsbInterface, ...]


class UsbDeviceHandle(Protocol):
    @property
    def serial_number(self) -> str | None:
        """Stable serial identity, or None when the host cannot report it."""

    @property
    def product(self) -> str:
        """Human readable product string."""

    @property
    def configurations(self) -> Sequence[UsbConfiguration]:
        """Configuration descriptors of the device."""

    @property
    def opened(self) -> bool:
        """Whether the device has been opened by this host."""

    def open(self) -> None:
        """Open the device for I/O."""

    def close(self) -> None:
        """Release the host resources held for the device."""

    def select_configuration(self, value: int) -> None:
        """Activate the configuration with the given bConfigurationValue."""

    def claim_interface(self, number: int) -> None:
        """Claim an interface for exclusive use."""

    def transfer_in(self, endpoint: UsbEndpoint, length: int) -> bytes:
        """Read up to `length` bytes from a bulk IN endpoint."""

    def transfer_out(self, endpoint: UsbEndpoint, data: bytes) -> int:
        """Write `data` to a bulk OUT endpoint and return the bytes written."""


class UsbHost(Protocol):
    def devices(self) -> list[UsbDeviceHandle]:
        """Return currently visible fastboot devices."""

    def wait_for_connect(self) -> None:
        """Block until the host reports that a new device has been connected."""
