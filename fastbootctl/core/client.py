"""High-level fastboot operations built on the protocol engine."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from fastbootctl.core.errors import ArgError, DeviceError
from fastbootctl.core.model import Slot
from fastbootctl.core.protocol import FastbootDevice

if TYPE_CHECKING:
    from fastbootctl.core.archive import ZipArchive

LOGGER = logging.getLogger(__name__)

_SLOT_NAMES = ("a", "b")


class ManifestInstaller(Protocol):
    def install(
        self,
        client: FastbootClient,
        archive: ZipArchive,
        manifest_text: str,
        wipe: bool,
    ) -> None:
        """Apply every directive of a fastboot-info manifest."""


class FastbootClient:
    """Slot-aware flashing, reboots and locking on top of `FastbootDevice`.

    Commands that make the bootloader re-enumerate (reboots, lock/unlock) wait
    for the device to come back before returning.
    """

    def __init__(
        self,
        device: FastbootDevice,
        *,
        installer: ManifestInstaller | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.device = device
        self.installer = installer
        self.logger = logger or LOGGER

    def get_var(self, name: str) -> str:
        return self.device.get_var(name)

    def erase(self, partition: str) -> None:
        self.device.exec(f"erase:{partition}")

    def lock(self) -> None:
        self.device.exec("flashing lock")
        self.device.wait_for_reconnect()

    def unlock(self) -> None:
        self.device.exec("flashing unlock")
        self.device.wait_for_reconnect()

    def reboot_bootloader(self) -> None:
        self.device.exec("reboot-bootloader")
        self.device.wait_for_reconnect()

    def reboot_fastboot(self) -> None:
        self.device.exec("reboot-fastboot")
        self.device.wait_for_reconnect()

    def current_slot(self) -> str:
        slot = self.get_var("current-slot").lstrip("_")
        if slot not in _SLOT_NAMES:
            raise DeviceError("FAIL", f"Unexpected current-slot value: {slot!r}")
        return slot

    def other_slot(self) -> str:
        return "b" if self.current_slot() == "a" else "a"

    def set_active(self, slot: str) -> None:
        self.device.exec(f"set_active:{slot}")

    def set_active_other_slot(self) -> None:
        self.set_active(self.other_slot())

    def has_slot(self, partition: str) -> bool:
        try:
            return self.get_var(f"has-slot:{partition}") == "yes"
        except DeviceError:
            return False

    def max_download_size(self) -> int | None:
        try:
            value = self.get_var("max-download-size")
        except DeviceError:
            return None
        try:
            return int(value, 0)
        except ValueError:
            self.logger.warning("Ignoring unparsable max-download-size %r", value)
            return None

    def resolve_partition(self, partition: str, slot: Slot | str = Slot.CURRENT) -> str:
        slot = Slot(slot)
        if not self.has_slot(partition):
            if slot in (Slot.A, Slot.B):
                raise ArgError(f"Partition {partition} has no slots, cannot flash slot {slot.value}")
            return partition

        if slot is Slot.CURRENT:
            suffix = self.current_slot()
        elif slot is Slot.OTHER:
            suffix = self.other_slot()
        else:
            suffix = slot.value
        return f"{partition}_{suffix}"

    def do_flash(
        self,
        partition: str,
        payload: bytes,
        slot: Slot | str = Slot.CURRENT,
        apply_vbmeta: bool = False,
    ) -> None:
        limit = self.max_download_size()
        if limit is not None and len(payload) > limit:
            raise DeviceError(
                "FAIL",
                f"{partition} image is {len(payload)} bytes, larger than max-download-size {limit}",
            )

        target = self.resolve_partition(partition, slot)
        self.logger.info(
            "Flashing %s (%d bytes)%s",
            target,
            len(payload),
            " with vbmeta applied" if apply_vbmeta else "",
        )
        self.device.transfer_data(payload)
        self.device.exec(f"flash:{target}")

    def update_super(self, super_empty: bytes, *, wipe: bool = False) -> None:
        self.device.transfer_data(super_empty)
        self.device.exec("update-super:super:wipe" if wipe else "update-super:super")

    def fastboot_info(self, archive: ZipArchive, manifest_text: str, wipe: bool) -> None:
        if self.installer is None:
            raise ArgError("No fastboot-info installer configured for update packages")
        self.installer.install(self, archive, manifest_text, wipe)

    def erase_all(self, partitions: Sequence[str]) -> None:
        for partition in partitions:
            self.erase(partition)
