"""Runs vendor flash-all scripts from a factory image archive."""

from __future__ import annotations

import logging
import math
import time
import zipfile
from collections.abc import Callable, Sequence

from fastbootctl.core.archive import ZipArchive, find_entry
from fastbootctl.core.client import FastbootClient
from fastbootctl.core.errors import ArgError, ParseError, UnsupportedCommandError
from fastbootctl.core.instructions import filter_flash_all, parse_instructions
from fastbootctl.core.model import Command, Instruction, Slot

LOGGER = logging.getLogger(__name__)

FLASH_ALL_SCRIPT = "flash-all.sh"
FASTBOOT_INFO = "fastboot-info.txt"
DEFAULT_SLEEP_S = 5.0
OEM_NOOP_DELAY_S = 0.01

_REQUIRED_ARGS = {
    Command.FLASH: ("partition", "filename"),
    Command.UPDATE: ("archive",),
    Command.FLASHING: ("lock|unlock",),
    Command.GETVAR: ("variable",),
    Command.ERASE: ("partition",),
}
_FLASHING_ACTIONS = ("lock", "unlock")
# Motorola bootloader mode toggles, meaningless for a host-driven flash.
_OEM_NOOPS = ("fb_mode_set", "fb_mode_clear")


class FastbootFlasher:
    def __init__(
        self,
        client: FastbootClient,
        archive: ZipArchive,
        *,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        default_sleep_s: float = DEFAULT_SLEEP_S,
    ) -> None:
        self.client = client
        self.archive = archive
        self.logger = logger or LOGGER
        self.default_sleep_s = default_sleep_s
        self._sleep = sleep
        self._handlers: dict[Command, Callable[[Instruction, Sequence[zipfile.ZipInfo]], None]] = {
            Command.FLASH: self._flash,
            Command.REBOOT_BOOTLOADER: self._reboot_bootloader,
            Command.UPDATE: self._update,
            Command.FLASHING: self._flashing,
            Command.GETVAR: self._getvar,
            Command.ERASE: self._erase,
            Command.SLEEP: self._sleep_instruction,
            Command.OEM: self._oem,
        }

    def run_flash_all(self) -> list[Instruction]:
        """Run flash-all.sh, ignoring every shell line except fastboot and sleep."""
        entry = find_entry(self.archive.entries(), FLASH_ALL_SCRIPT)
        script = filter_flash_all(self.archive.read_text(entry))
        return self.run(script)

    def run(self, script_text: str) -> list[Instruction]:
        entries = self.archive.entries()
        instructions = parse_instructions(script_text, logger=self.logger)
        for instruction in instructions:
            self.validate(instruction)

        for instruction in instructions:
            self.logger.info("‣ %s", _describe(instruction))
            self._handlers[instruction.command](instruction, entries)
        return instructions

    def validate(self, instruction: Instruction) -> None:
        if instruction.command not in self._handlers:
            raise UnsupportedCommandError(
                f"Fastboot command {instruction.command.value} not implemented"
            )

        required = _REQUIRED_ARGS.get(instruction.command, ())
        if len(instruction.args) < len(required):
            raise ArgError(
                f"{instruction.command.value} requires arguments: {' '.join(required)}"
            )

        if instruction.command is Command.FLASHING and instruction.args[0] not in _FLASHING_ACTIONS:
            raise ParseError(f"Unknown flashing command: {instruction.args[0]}")
        if instruction.command is Command.OEM and (
            not instruction.args or instruction.args[0] not in _OEM_NOOPS
        ):
            subcommand = instruction.args[0] if instruction.args else ""
            raise UnsupportedCommandError(f"Fastboot oem command {subcommand} not implemented")
        if instruction.command is Command.SLEEP and instruction.args:
            _seconds(instruction.args[0])

    def _flash(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        partition, filename = instruction.args[0], instruction.args[1]
        slot = instruction.options.slot or Slot.CURRENT
        payload = self.archive.read_bytes(find_entry(entries, filename))
        self.client.do_flash(partition, payload, slot, instruction.options.apply_vbmeta)

    def _reboot_bootloader(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        set_active = instruction.options.set_active
        if set_active is Slot.OTHER:
            self.client.set_active_other_slot()
        elif set_active in (Slot.A, Slot.B):
            self.client.set_active(set_active.value)
        self.client.reboot_bootloader()

    def _update(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        with self.archive.open_nested(find_entry(entries, instruction.args[0])) as nested:
            manifest_entry = find_entry(nested.entries(), FASTBOOT_INFO, exact=True)
            manifest_text = nested.read_text(manifest_entry)
            self.logger.info("%s: %s", FASTBOOT_INFO, manifest_text)
            self.client.fastboot_info(nested, manifest_text, instruction.options.wipe)

    def _flashing(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        if instruction.args[0] == "lock":
            self.client.lock()
        else:
            self.client.unlock()

    def _getvar(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        name = instruction.args[0]
        value = self.client.get_var(name)
        self.logger.info("getVar(%s) => %s", name, value)

    def _erase(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        self.client.erase(instruction.args[0])

    def _sleep_instruction(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        seconds = _seconds(instruction.args[0]) if instruction.args else self.default_sleep_s
        self._sleep(seconds)

    def _oem(self, instruction: Instruction, entries: Sequence[zipfile.ZipInfo]) -> None:
        self._sleep(OEM_NOOP_DELAY_S)


def _seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise ArgError(f"sleep expects a number of seconds, got {value!r}") from None
    if not math.isfinite(seconds) or seconds < 0:
        raise ArgError(f"sleep expects a non-negative number of seconds, got {value!r}")
    return seconds


def _describe(instruction: Instruction) -> str:
    parts = [instruction.command.value, *instruction.args]
    options = instruction.options
    if options.wipe:
        parts.append("-w")
    if options.slot is not None:
        parts.append(f"--slot={options.slot.value}")
    if options.set_active is not None:
        parts.append(f"--set-active={options.set_active.value}")
    if options.skip_reboot:
        parts.append("--skip-reboot")
    if options.apply_vbmeta:
        parts.append("--apply-vbmeta")
    return " ".join(parts)
