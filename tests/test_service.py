from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest

from fakes import FakeBootloader, FakeHost

from fastbootctl.core.config import Settings
from fastbootctl.core.errors import DeviceSelectionError, ParseError
from fastbootctl.core.model import Command, DetectedDevice
from fastbootctl.core.service import FastbootService


def _factory_zip(path: Path) -> Path:
    nested = io.BytesIO()
    with zipfile.ZipFile(nested, "w") as zf:
        zf.writestr("fastboot-info.txt", "version 1\nflash boot\nif-wipe erase userdata\n")
        zf.writestr("boot.img", b"BOOT")

    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(
            "lynx-bp1a/flash-all.sh",
            "#!/bin/sh\nfastboot getvar product\nfastboot -w update image-lynx.zip\necho done\n",
        )
        zf.writestr("lynx-bp1a/image-lynx.zip", nested.getvalue())
    return path


def _service(*devices: FakeBootloader) -> FastbootService:
    return FastbootService(host=FakeHost(*devices), settings=Settings(), sleep=lambda _: None)


def test_list_devices() -> None:
    service = _service(FakeBootloader(serial="ABC", product="Pixel 7a"), FakeBootloader(serial=None))
    assert service.list_devices() == [
        DetectedDevice(serial="ABC", product="Pixel 7a"),
        DetectedDevice(serial="<no-serial>", product="Pixel"),
    ]


def test_get_var_selects_device_by_serial() -> None:
    a = FakeBootloader(serial="AAA", variables={"product": "lynx"})
    b = FakeBootloader(serial="BBB", variables={"product": "felix"})
    service = _service(a, b)

    assert service.get_var("product", "BBB") == "felix"
    assert a.commands == []


def test_get_var_ambiguous_without_serial() -> None:
    service = _service(FakeBootloader(serial="AAA"), FakeBootloader(serial="BBB"))
    with pytest.raises(DeviceSelectionError):
        service.get_var("product")


def test_flash_all_runs_nested_update(tmp_path: Path) -> None:
    device = FakeBootloader(serial="AAA", variables={"product": "lynx"})
    service = _service(device)

    instructions = service.flash_all(_factory_zip(tmp_path / "factory.zip"))

    assert [i.command for i in instructions] == [Command.GETVAR, Command.UPDATE]
    assert device.commands == [
        "getvar:product",
        "getvar:max-download-size",
        "getvar:has-slot:boot",
        "download:00000004",
        "flash:boot",
        "erase:userdata",
    ]


def test_run_script_parse_error_touches_no_device(tmp_path: Path) -> None:
    device = FakeBootloader(serial="AAA")
    service = _service(device)

    with pytest.raises(ParseError):
        service.run_script("fastboot nonsense", _factory_zip(tmp_path / "factory.zip"))
    assert device.calls == []


def test_parse_script_flash_all_mode() -> None:
    service = _service()
    instructions = service.parse_script("echo hi\nfastboot reboot-bootloader\nsleep 3\n", flash_all=True)
    assert [i.command for i in instructions] == [Command.REBOOT_BOOTLOADER, Command.SLEEP]
