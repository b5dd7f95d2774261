"""Binding of a host USB device handle to a fastboot endpoint pair.

The bootloader drops off the bus and re-enumerates for several commands
(flashing lock/unlock, reboots, slot switches). `UsbBinding` remembers the
serial number captured at bind time so it can find the same device again and
swap in the fresh handle.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from fastbootctl.core.device_match import find_by_serial
from fastbootctl.core.errors import SetupError, UsbConnectionError
from fastbootctl.transports.base import (
    DIRECTION_IN,
    DIRECTION_OUT,
    UsbDeviceHandle,
    UsbEndpoint,
    UsbHost,
)

LOGGER = logging.getLogger(__name__)

CONFIGURATION_VALUE = 1
INTERFACE_NUMBER = 0


@dataclass(frozen=True)
class ReconnectStep:
    """One rung of the reconnect ladder: an optional wait, then one attempt."""

    delay_s: float = 0.0
    wait_for_event: bool = False


DEFAULT_RECONNECT_SCHEDULE: tuple[ReconnectStep, ...] = (
    ReconnectStep(),
    ReconnectStep(delay_s=3.0),
    ReconnectStep(delay_s=30.0),
    ReconnectStep(wait_for_event=True),
)


def build_reconnect_schedule(
    delays_s: Sequence[float],
    *,
    wait_for_event: bool = True,
) -> tuple[ReconnectStep, ...]:
    steps = [ReconnectStep()]
    steps.extend(ReconnectStep(delay_s=float(delay)) for delay in delays_s)
    if wait_for_event:
        steps.append(ReconnectStep(wait_for_event=True))
    return tuple(steps)


def _resolve_endpoints(handle: UsbDeviceHandle, logger: logging.Logger) -> tuple[UsbEndpoint, UsbEndpoint]:
    configurations = handle.configurations
    if not configurations:
        raise SetupError("USB device exposes no configurations")
    if len(configurations) > 1:
        logger.warning("device has %d configurations. Using the first one.", len(configurations))

    interfaces = configurations[0].interfaces
    if not interfaces:
        raise SetupError("USB configuration exposes no interfaces")

    endpoints = interfaces[0].endpoints
    if len(endpoints) != 2:
        raise SetupError(f"USB interface must have exactly 2 endpoints, found {len(endpoints)}")

    ep_in: UsbEndpoint | None = None
    ep_out: UsbEndpoint | None = None
    for endpoint in endpoints:
        if endpoint.direction == DIRECTION_IN and ep_in is None:
            ep_in = endpoint
        elif endpoint.direction == DIRECTION_OUT and ep_out is None:
            ep_out = endpoint
        else:
            raise SetupError(f"Endpoint error: {endpoint}")

    if ep_in is None or ep_out is None:
        raise SetupError("USB interface must have one IN and one OUT endpoint")
    return ep_in, ep_out


class UsbBinding:
    def __init__(
        self,
        host: UsbHost,
        handle: UsbDeviceHandle,
        *,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        reconnect_schedule: Sequence[ReconnectStep] = DEFAULT_RECONNECT_SCHEDULE,
    ) -> None:
        self.host = host
        self.logger = logger or LOGGER
        self.reconnect_schedule = tuple(reconnect_schedule)
        self._sleep = sleep
        self.serial_number: str = ""
        self.bind(handle)

    def bind(self, handle: UsbDeviceHandle) -> None:
        serial = handle.serial_number
        if not serial:
            raise SetupError(
                "USB device serial number is required to track the device across reconnects"
            )
        if self.serial_number and serial != self.serial_number:
            raise SetupError(f"Refusing to rebind {self.serial_number} to device {serial}")
        ep_in, ep_out = _resolve_endpoints(handle, self.logger)
        if self.serial_number and handle is not self.handle:
            self.handle.close()

        self.handle = handle
        self.serial_number = serial
        self.ep_in = ep_in
        self.ep_out = ep_out

    @property
    def opened(self) -> bool:
        return self.handle.opened

    def connect(self) -> None:
        if not self.handle.opened:
            self.handle.open()
        self.handle.select_configuration(CONFIGURATION_VALUE)
        self.handle.claim_interface(INTERFACE_NUMBER)

    def reconnect(self) -> bool:
        handle = find_by_serial(self.host.devices(), self.serial_number)
        if handle is None:
            raise UsbConnectionError(f"Could not find device {self.serial_number} among visible USB devices")
        self.logger.info("reconnect: Found device %s", self.serial_number)
        self.bind(handle)
        self.connect()
        return True

    def wait_for_reconnect(self) -> bool:
        last_error: UsbConnectionError | None = None
        for step in self.reconnect_schedule:
            if step.delay_s:
                self.logger.info("waitForReconnect wait %g seconds", step.delay_s)
                self._sleep(step.delay_s)
            if step.wait_for_event:
                self.logger.info("waitForReconnect waiting for USB connect event")
                self.host.wait_for_connect()
            try:
                self.logger.info("waitForReconnect try reconnect()")
                return self.reconnect()
            except UsbConnectionError as exc:
                last_error = exc
        if last_error is None:
            raise UsbConnectionError("Reconnect schedule is empty")
        raise last_error

    def read(self, length: int) -> bytes:
        return self.handle.transfer_in(self.ep_in, length)

    def write(self, data: bytes) -> int:
        return self.handle.transfer_out(self.ep_out, data)
