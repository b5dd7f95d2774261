"""Serial-number based device matching."""

from __future__ import annotations

from collections.abc import Sequence

from fastbootctl.core.errors import DeviceSelectionError
from fastbootctl.transports.base import UsbDeviceHandle


def find_by_serial(handles: Sequence[UsbDeviceHandle], serial: str) -> UsbDeviceHandle | None:
    for handle in handles:
        if handle.serial_number == serial:
            return handle
    return None


def select_device(handles: Sequence[UsbDeviceHandle], serial_hint: str | None) -> UsbDeviceHandle:
    if not handles:
        raise DeviceSelectionError("No fastboot devices found. Ensure the device is in bootloader mode.")

    if serial_hint:
        exact = find_by_serial(handles, serial_hint)
        if exact is not None:
            return exact
        hint = serial_hint.lower()
        hinted = [h for h in handles if h.serial_number and hint in h.serial_number.lower()]
        if not hinted:
            raise DeviceSelectionError(f"No fastboot device found matching '{serial_hint}'")
        handles = hinted

    if len(handles) > 1:
        candidate_desc = ", ".join(f"{h.serial_number} ({h.product})" for h in handles)
        raise DeviceSelectionError(
            f"Multiple fastboot devices found: {candidate_desc}. Use --serial to choose one."
        )

    return handles[0]
