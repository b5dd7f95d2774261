from __future__ import annotations

import pytest
import usb.core

from fastbootctl.core.errors import UsbTransferError
from fastbootctl.transports import pyusb_host
from fastbootctl.transports.base import UsbEndpoint
from fastbootctl.transports.pyusb_host import PyUSBDevice, PyUSBHost, is_fastboot_device


class FakeEndpoint:
    def __init__(self, address: int, attributes: int = 0x02) -> None:
        self.bEndpointAddress = address
        self.bmAttributes = attributes


class FakeInterface(list):
    def __init__(self, endpoints, *, cls=0xFF, subclass=0x42, protocol=0x03, number=0, alt=0) -> None:
        super().__init__(endpoints)
        self.bInterfaceClass = cls
        self.bInterfaceSubClass = subclass
        self.bInterfaceProtocol = protocol
        self.bInterfaceNumber = number
        self.bAlternateSetting = alt


class FakeConfiguration(list):
    def __init__(self, interfaces, value: int = 1) -> None:
        super().__init__(interfaces)
        self.bConfigurationValue = value


class FakePyUSBDevice(list):
    def __init__(self, configurations, *, serial="ABC", vendor=0x18D1, bus=1, address=5) -> None:
        super().__init__(configurations)
        self.serial_number = serial
        self.product = "Pixel"
        self.idVendor = vendor
        self.bus = bus
        self.address = address
        self.reads: list[tuple[int, int, int]] = []
        self.written: list[tuple[int, bytes, int]] = []
        self.read_error: Exception | None = None

    def read(self, address, length, timeout=None):
        if self.read_error:
            raise self.read_error
        self.reads.append((address, length, timeout))
        return bytearray(b"OKAY")

    def write(self, address, data, timeout=None):
        self.written.append((address, bytes(data), timeout))
        return len(data)


def _fastboot_dev(**kwargs) -> FakePyUSBDevice:
    interface = FakeInterface([FakeEndpoint(0x81), FakeEndpoint(0x01), FakeEndpoint(0x83, attributes=0x03)])
    return FakePyUSBDevice([FakeConfiguration([interface])], **kwargs)


def test_descriptors_are_translated_to_bulk_endpoints() -> None:
    device = PyUSBDevice(_fastboot_dev())
    (configuration,) = device.configurations
    assert configuration.value == 1
    (interface,) = configuration.interfaces
    assert interface.endpoints == (
        UsbEndpoint(address=0x81, direction="in"),
        UsbEndpoint(address=0x01, direction="out"),
    )


def test_transfers_use_endpoint_addresses_without_timeout() -> None:
    raw = _fastboot_dev()
    device = PyUSBDevice(raw)
    assert device.transfer_in(UsbEndpoint(0x81, "in"), 256) == b"OKAY"
    assert device.transfer_out(UsbEndpoint(0x01, "out"), b"getvar:product") == 14
    assert raw.reads == [(0x81, 256, 0)]
    assert raw.written == [(0x01, b"getvar:product", 0)]


def test_usb_errors_are_wrapped() -> None:
    raw = _fastboot_dev()
    raw.read_error = usb.core.USBError("No such device")
    with pytest.raises(UsbTransferError):
        PyUSBDevice(raw).transfer_in(UsbEndpoint(0x81, "in"), 256)


def test_is_fastboot_device_checks_interface_class() -> None:
    assert is_fastboot_device(_fastboot_dev()) is True
    adb = FakePyUSBDevice([FakeConfiguration([FakeInterface([], subclass=0x42, protocol=0x01)])])
    assert is_fastboot_device(adb) is False


def test_host_filters_vendor_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    google = _fastboot_dev(serial="G")
    other = _fastboot_dev(serial="M", vendor=0x22B8)

    def fake_find(find_all, custom_match):
        return [d for d in (google, other) if custom_match(d)]

    monkeypatch.setattr(pyusb_host.usb.core, "find", fake_find)

    assert [d.serial_number for d in PyUSBHost().devices()] == ["G"]
    assert [d.serial_number for d in PyUSBHost(vendor_ids=()).devices()] == ["G", "M"]


def test_wait_for_connect_polls_until_new_device(monkeypatch: pytest.MonkeyPatch) -> None:
    visible = [_fastboot_dev(address=5)]
    polls: list[float] = []

    def fake_find(find_all, custom_match):
        return list(visible)

    def sleep(seconds: float) -> None:
        polls.append(seconds)
        if len(polls) == 3:
            visible.append(_fastboot_dev(address=9))

    monkeypatch.setattr(pyusb_host.usb.core, "find", fake_find)

    PyUSBHost(poll_interval_s=0.25, sleep=sleep).wait_for_connect()
    assert polls == [0.25, 0.25, 0.25]


def test_close_disposes_resources(monkeypatch: pytest.MonkeyPatch) -> None:
    disposed: list[object] = []
    monkeypatch.setattr(pyusb_host.usb.util, "dispose_resources", disposed.append)
    raw = _fastboot_dev()
    device = PyUSBDevice(raw)
    device._opened = True

    device.close()
    assert disposed == [raw]
    assert device.opened is False


def test_close_tolerates_vanished_device(monkeypatch: pytest.MonkeyPatch) -> None:
    def dispose(dev) -> None:
        raise usb.core.USBError("No such device")

    monkeypatch.setattr(pyusb_host.usb.util, "dispose_resources", dispose)
    PyUSBDevice(_fastboot_dev()).close()
