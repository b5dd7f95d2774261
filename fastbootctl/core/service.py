"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from fastbootctl.core.archive import ZipArchive
from fastbootctl.core.client import FastbootClient
from fastbootctl.core.config import Settings, load_settings
from fastbootctl.core.device_match import select_device
from fastbootctl.core.fastboot_info import FastbootInfoInstaller
from fastbootctl.core.flasher import FastbootFlasher
from fastbootctl.core.instructions import filter_flash_all, parse_instructions
from fastbootctl.core.model import DetectedDevice, Instruction
from fastbootctl.core.protocol import FastbootDevice
from fastbootctl.transports.base import UsbHost
from fastbootctl.transports.binding import UsbBinding, build_reconnect_schedule

LOGGER = logging.getLogger(__name__)


class FastbootService:
    def __init__(
        self,
        *,
        host: UsbHost | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.logger = logger or LOGGER
        self._sleep = sleep
        self.host = host or _default_host(self.settings, sleep)

    def list_devices(self) -> list[DetectedDevice]:
        return [
            DetectedDevice(serial=handle.serial_number or "<no-serial>", product=handle.product)
            for handle in self.host.devices()
        ]

    def open_client(self, serial_hint: str | None = None) -> FastbootClient:
        handle = select_device(self.host.devices(), serial_hint)
        binding = UsbBinding(
            self.host,
            handle,
            logger=self.logger,
            sleep=self._sleep,
            reconnect_schedule=build_reconnect_schedule(
                self.settings.reconnect_delays_s,
                wait_for_event=self.settings.wait_for_connect_event,
            ),
        )
        binding.connect()
        device = FastbootDevice(binding, logger=self.logger)
        return FastbootClient(
            device,
            installer=FastbootInfoInstaller(logger=self.logger),
            logger=self.logger,
        )

    def get_var(self, name: str, serial_hint: str | None = None) -> str:
        return self.open_client(serial_hint).get_var(name)

    def flash_all(self, archive_path: Path, serial_hint: str | None = None) -> list[Instruction]:
        client = self.open_client(serial_hint)
        with ZipArchive(archive_path) as archive:
            return self._flasher(client, archive).run_flash_all()

    def run_script(
        self,
        script_text: str,
        archive_path: Path,
        serial_hint: str | None = None,
    ) -> list[Instruction]:
        parse_instructions(script_text, logger=self.logger)
        client = self.open_client(serial_hint)
        with ZipArchive(archive_path) as archive:
            return self._flasher(client, archive).run(script_text)

    def parse_script(self, script_text: str, *, flash_all: bool = False) -> list[Instruction]:
        if flash_all:
            script_text = filter_flash_all(script_text)
        return parse_instructions(script_text, logger=self.logger)

    def _flasher(self, client: FastbootClient, archive: ZipArchive) -> FastbootFlasher:
        return FastbootFlasher(
            client,
            archive,
            logger=self.logger,
            sleep=self._sleep,
            default_sleep_s=self.settings.default_sleep_s,
        )


def _default_host(settings: Settings, sleep: Callable[[float], None]) -> UsbHost:
    from fastbootctl.transports.pyusb_host import PyUSBHost

    return PyUSBHost(
        vendor_ids=settings.vendor_ids,
        poll_interval_s=settings.poll_interval_s,
        sleep=sleep,
    )
