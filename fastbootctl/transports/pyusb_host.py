"""Host USB capability implemented with pyusb."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

import usb.core
import usb.util

from fastbootctl.core.errors import UsbTransferError
from fastbootctl.transports.base import (
    DIRECTION_IN,
    DIRECTION_OUT,
    UsbConfiguration,
    UsbEndpoint,
    UsbInterface,
)

LOGGER = logging.getLogger(__name__)

FASTBOOT_CLASS = 0xFF
FASTBOOT_SUBCLASS = 0x42
FASTBOOT_PROTOCOL = 0x03
GOOGLE_VENDOR_ID = 0x18D1

# libusb treats 0 as "no timeout"
NO_TIMEOUT_MS = 0


def is_fastboot_device(dev: Any) -> bool:
    try:
        for cfg in dev:
            for intf in cfg:
                if (
                    intf.bInterfaceClass == FASTBOOT_CLASS
                    and intf.bInterfaceSubClass == FASTBOOT_SUBCLASS
                    and intf.bInterfaceProtocol == FASTBOOT_PROTOCOL
                ):
                    return True
    except usb.core.USBError:
        return False
    return False


def _endpoint_direction(address: int) -> str:
    if usb.util.endpoint_direction(address) == usb.util.ENDPOINT_IN:
        return DIRECTION_IN
    return DIRECTION_OUT


class PyUSBDevice:
    def __init__(self, dev: Any, *, timeout_ms: int = NO_TIMEOUT_MS) -> None:
        self.dev = dev
        self.timeout_ms = timeout_ms
        self._opened = False

    @property
    def location(self) -> tuple[int, int]:
        return (self.dev.bus, self.dev.address)

    @property
    def serial_number(self) -> str | None:
        try:
            return self.dev.serial_number
        except (ValueError, usb.core.USBError):
            return None

    @property
    def product(self) -> str:
        try:
            return self.dev.product or "<unknown-device>"
        except (ValueError, usb.core.USBError):
            return "<unknown-device>"

    @property
    def configurations(self) -> list[UsbConfiguration]:
        configurations: list[UsbConfiguration] = []
        for cfg in self.dev:
            interfaces = []
            for intf in cfg:
                if intf.bAlternateSetting != 0:
                    continue
                endpoints = tuple(
                    UsbEndpoint(
                        address=ep.bEndpointAddress,
                        direction=_endpoint_direction(ep.bEndpointAddress),
                    )
                    for ep in intf
                    if usb.util.endpoint_type(ep.bmAttributes) == usb.util.ENDPOINT_TYPE_BULK
                )
                interfaces.append(UsbInterface(number=intf.bInterfaceNumber, endpoints=endpoints))
            configurations.append(
                UsbConfiguration(value=cfg.bConfigurationValue, interfaces=tuple(interfaces))
            )
        return configurations

    @property
    def opened(self) -> bool:
        return self._opened

    def open(self) -> None:
        try:
            if self.dev.is_kernel_driver_active(0):
                self.dev.detach_kernel_driver(0)
        except NotImplementedError:
            # Not supported on this platform's backend.
            pass
        except usb.core.USBError as exc:
            raise UsbTransferError(f"Could not open USB device: {exc}") from exc
        self._opened = True

    def close(self) -> None:
        try:
            usb.util.dispose_resources(self.dev)
        except usb.core.USBError as exc:
            # The device usually vanished during a reboot; its handle is dead anyway.
            LOGGER.debug("Could not release USB device resources: %s", exc)
        self._opened = False

    def select_configuration(self, value: int) -> None:
        try:
            self.dev.set_configuration(value)
        except usb.core.USBError as exc:
            raise UsbTransferError(f"Could not select USB configuration {value}: {exc}") from exc

    def claim_interface(self, number: int) -> None:
        try:
            usb.util.claim_interface(self.dev, number)
        except usb.core.USBError as exc:
            raise UsbTransferError(f"Could not claim USB interface {number}: {exc}") from exc

    def transfer_in(self, endpoint: UsbEndpoint, length: int) -> bytes:
        try:
            return bytes(self.dev.read(endpoint.address, length, timeout=self.timeout_ms))
        except usb.core.USBError as exc:
            raise UsbTransferError(f"USB read from endpoint {endpoint.number} failed: {exc}") from exc

    def transfer_out(self, endpoint: UsbEndpoint, data: bytes) -> int:
        try:
            return self.dev.write(endpoint.address, data, timeout=self.timeout_ms)
        except usb.core.USBError as exc:
            raise UsbTransferError(f"USB write to endpoint {endpoint.number} failed: {exc}") from exc


class PyUSBHost:
    """Enumerates fastboot devices with pyusb.

    pyusb has no hotplug notifications, so `wait_for_connect` polls for a
    device that was not present when the wait started.
    """

    def __init__(
        self,
        *,
        vendor_ids: Sequence[int] = (GOOGLE_VENDOR_ID,),
        poll_interval_s: float = 1.0,
        timeout_ms: int = NO_TIMEOUT_MS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.vendor_ids = tuple(vendor_ids)
        self.poll_interval_s = poll_interval_s
        self.timeout_ms = timeout_ms
        self._sleep = sleep

    def _match(self, dev: Any) -> bool:
        if self.vendor_ids and dev.idVendor not in self.vendor_ids:
            return False
        return is_fastboot_device(dev)

    def devices(self) -> list[PyUSBDevice]:
        try:
            found = usb.core.find(find_all=True, custom_match=self._match)
            return [PyUSBDevice(dev, timeout_ms=self.timeout_ms) for dev in found]
        except usb.core.NoBackendError as exc:
            raise UsbTransferError(f"No libusb backend available: {exc}") from exc

    def wait_for_connect(self) -> None:
        known = {device.location for device in self.devices()}
        LOGGER.debug("Waiting for a new fastboot device (%d already visible)", len(known))
        while True:
            self._sleep(self.poll_interval_s)
            current = {device.location for device in self.devices()}
            if current - known:
                return
            known = current
