"""Installer for fastboot-info.txt manifests shipped in update packages.

A manifest lists one directive per line::

    version 1
    flash boot
    flash --apply-vbmeta vbmeta
    flash --slot-other system
    reboot fastboot
    update-super
    if-wipe erase userdata
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastbootctl.core.archive import ZipArchive, find_entry
from fastbootctl.core.client import FastbootClient
from fastbootctl.core.errors import ArgError, ParseError, UnsupportedCommandError
from fastbootctl.core.instructions import script_lines, split_words
from fastbootctl.core.model import InstructionOptions, Slot

LOGGER = logging.getLogger(__name__)

SUPPORTED_VERSION = 1
SUPER_EMPTY_IMAGE = "super_empty.img"
DEFAULT_WIPE_PARTITIONS = ("userdata", "metadata")

_DIRECTIVES = ("version", "flash", "reboot", "update-super", "erase")
_REBOOT_TARGETS = ("bootloader", "fastboot")


@dataclass(frozen=True)
class ManifestDirective:
    name: str
    args: tuple[str, ...] = ()
    options: InstructionOptions = InstructionOptions()
    if_wipe: bool = False


def parse_directive(line: str, *, logger: logging.Logger = LOGGER) -> ManifestDirective:
    words = line.split()
    if_wipe = bool(words) and words[0] == "if-wipe"
    if if_wipe:
        words = words[1:]

    positional, options = split_words(words, logger=logger)
    if not positional:
        raise ParseError(f"missing directive in fastboot-info line: {line!r}")
    name, args = positional[0], tuple(positional[1:])

    if name not in _DIRECTIVES:
        raise UnsupportedCommandError(f"fastboot-info directive {name} not implemented")
    if name in ("version", "flash", "erase") and not args:
        raise ArgError(f"fastboot-info directive {name} requires an argument")
    if name == "version":
        try:
            version = int(args[0])
        except ValueError:
            raise ParseError(f"invalid fastboot-info version: {args[0]!r}") from None
        if version > SUPPORTED_VERSION:
            raise UnsupportedCommandError(f"fastboot-info version {version} is not supported")
    if name == "reboot" and (len(args) != 1 or args[0] not in _REBOOT_TARGETS):
        raise UnsupportedCommandError(f"fastboot-info reboot target {' '.join(args)!r} not implemented")

    return ManifestDirective(name=name, args=args, options=options, if_wipe=if_wipe)


def parse_fastboot_info(text: str, *, logger: logging.Logger = LOGGER) -> list[ManifestDirective]:
    return [parse_directive(line, logger=logger) for line in script_lines(text)]


class FastbootInfoInstaller:
    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or LOGGER

    def install(
        self,
        client: FastbootClient,
        archive: ZipArchive,
        manifest_text: str,
        wipe: bool,
    ) -> None:
        directives = parse_fastboot_info(manifest_text, logger=self.logger)
        entries = archive.entries()

        for directive in directives:
            if directive.if_wipe and not wipe:
                self.logger.debug("Skipping %s (no wipe requested)", directive.name)
                continue
            self.logger.info("fastboot-info: %s %s", directive.name, " ".join(directive.args))

            if directive.name == "flash":
                partition = directive.args[0]
                filename = directive.args[1] if len(directive.args) > 1 else f"{partition}.img"
                payload = archive.read_bytes(find_entry(entries, filename))
                client.do_flash(
                    partition,
                    payload,
                    directive.options.slot or Slot.CURRENT,
                    directive.options.apply_vbmeta,
                )
            elif directive.name == "reboot":
                if directive.args[0] == "fastboot":
                    client.reboot_fastboot()
                else:
                    client.reboot_bootloader()
            elif directive.name == "update-super":
                payload = archive.read_bytes(find_entry(entries, SUPER_EMPTY_IMAGE))
                client.update_super(payload, wipe=wipe)
            elif directive.name == "erase":
                client.erase(directive.args[0])

        if wipe and not any(directive.if_wipe for directive in directives):
            client.erase_all(DEFAULT_WIPE_PARTITIONS)
