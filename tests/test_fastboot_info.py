from __future__ import annotations

import io
import zipfile

import pytest

from fastbootctl.core.archive import ZipArchive
from fastbootctl.core.errors import ArgError, UnsupportedCommandError
from fastbootctl.core.fastboot_info import FastbootInfoInstaller, parse_directive, parse_fastboot_info
from fastbootctl.core.model import Slot

MANIFEST = """version 1
# boot chain first
flash boot
flash --apply-vbmeta vbmeta
flash --slot-other bootloader bootloader-lynx.img
reboot fastboot
update-super
flash product
if-wipe erase userdata
if-wipe erase metadata
"""


class FakeClient:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def do_flash(self, partition, payload, slot=Slot.CURRENT, apply_vbmeta=False) -> None:
        self.calls.append(("flash", partition, payload, slot, apply_vbmeta))

    def reboot_fastboot(self) -> None:
        self.calls.append(("reboot_fastboot",))

    def reboot_bootloader(self) -> None:
        self.calls.append(("reboot_bootloader",))

    def update_super(self, payload, *, wipe=False) -> None:
        self.calls.append(("update_super", payload, wipe))

    def erase(self, partition) -> None:
        self.calls.append(("erase", partition))

    def erase_all(self, partitions) -> None:
        for partition in partitions:
            self.erase(partition)


def _archive() -> ZipArchive:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name in ("boot.img", "vbmeta.img", "bootloader-lynx.img", "super_empty.img", "product.img"):
            zf.writestr(name, name.upper().encode())
        zf.writestr("fastboot-info.txt", MANIFEST)
    return ZipArchive(buffer.getvalue())


def test_parse_directives() -> None:
    directives = parse_fastboot_info(MANIFEST)
    assert [d.name for d in directives] == [
        "version",
        "flash",
        "flash",
        "flash",
        "reboot",
        "update-super",
        "flash",
        "erase",
        "erase",
    ]
    assert directives[2].options.apply_vbmeta is True
    assert directives[3].options.slot is Slot.OTHER
    assert directives[-1].if_wipe is True


def test_install_with_wipe() -> None:
    client = FakeClient()
    FastbootInfoInstaller().install(client, _archive(), MANIFEST, True)  # type: ignore[arg-type]

    assert client.calls == [
        ("flash", "boot", b"BOOT.IMG", Slot.CURRENT, False),
        ("flash", "vbmeta", b"VBMETA.IMG", Slot.CURRENT, True),
        ("flash", "bootloader", b"BOOTLOADER-LYNX.IMG", Slot.OTHER, False),
        ("reboot_fastboot",),
        ("update_super", b"SUPER_EMPTY.IMG", True),
        ("flash", "product", b"PRODUCT.IMG", Slot.CURRENT, False),
        ("erase", "userdata"),
        ("erase", "metadata"),
    ]


def test_install_without_wipe_skips_if_wipe() -> None:
    client = FakeClient()
    FastbootInfoInstaller().install(client, _archive(), MANIFEST, False)  # type: ignore[arg-type]
    assert ("erase", "userdata") not in client.calls
    assert ("update_super", b"SUPER_EMPTY.IMG", False) in client.calls


def test_wipe_without_if_wipe_directives_erases_defaults() -> None:
    client = FakeClient()
    FastbootInfoInstaller().install(client, _archive(), "version 1\nflash boot\n", True)  # type: ignore[arg-type]
    assert client.calls[-2:] == [("erase", "userdata"), ("erase", "metadata")]


def test_missing_image_is_arg_error() -> None:
    client = FakeClient()
    with pytest.raises(ArgError):
        FastbootInfoInstaller().install(client, _archive(), "flash system", False)  # type: ignore[arg-type]


@pytest.mark.parametrize("line", ["version 2", "reboot recovery", "reboot", "optimize-super"])
def test_unsupported_directives(line: str) -> None:
    with pytest.raises(UnsupportedCommandError):
        parse_directive(line)


def test_flash_directive_requires_partition() -> None:
    with pytest.raises(ArgError):
        parse_directive("flash --apply-vbmeta")
