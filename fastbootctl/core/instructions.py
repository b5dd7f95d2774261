"""Parser for the fastboot script dialect used by vendor flash-all scripts."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from fastbootctl.core.errors import ParseError
from fastbootctl.core.model import Command, Instruction, InstructionOptions, Slot

LOGGER = logging.getLogger(__name__)

_SET_ACTIVE_SLOTS = (Slot.OTHER, Slot.A, Slot.B)


def parse_option(word: str, options: InstructionOptions, *, logger: logging.Logger = LOGGER) -> InstructionOptions:
    if word in ("-w", "--wipe"):
        return replace(options, wipe=True)
    if word.startswith("--set-active="):
        value = word.split("=", 1)[1]
        if value in {slot.value for slot in _SET_ACTIVE_SLOTS}:
            return replace(options, set_active=Slot(value))
        logger.warning("Unknown option: %s", word)
        return options
    if word == "--slot-other":
        return replace(options, slot=Slot.OTHER)
    if word == "--slot" or word.startswith("--slot="):
        value = word.split("=", 1)[1] if "=" in word else ""
        try:
            return replace(options, slot=Slot(value))
        except ValueError:
            raise ParseError(f"unknown slot: {value!r}") from None
    if word == "--skip-reboot":
        return replace(options, skip_reboot=True)
    if word == "--apply-vbmeta":
        return replace(options, apply_vbmeta=True)
    logger.warning("Unknown option: %s", word)
    return options


def split_words(
    words: Iterable[str],
    *,
    logger: logging.Logger = LOGGER,
) -> tuple[list[str], InstructionOptions]:
    """Separate positional words from options, folding options into a record."""
    positional: list[str] = []
    options = InstructionOptions()
    for word in words:
        if word.startswith("-"):
            options = parse_option(word, options, logger=logger)
        else:
            positional.append(word)
    return positional, options


def parse_instruction(line: str, *, logger: logging.Logger = LOGGER) -> Instruction:
    words = line.split()
    if words and words[0] == "fastboot":
        words = words[1:]

    positional, options = split_words(words, logger=logger)
    if not positional:
        raise ParseError(f"missing command in line: {line!r}")

    name, args = positional[0], positional[1:]
    try:
        command = Command(name)
    except ValueError:
        raise ParseError(f"unknown command: {name!r}") from None
    return Instruction(command=command, args=tuple(args), options=options)


def script_lines(text: str) -> list[str]:
    lines = (line.strip() for line in text.split("\n"))
    return [line for line in lines if line and not line.startswith("#")]


def parse_instructions(text: str, *, logger: logging.Logger = LOGGER) -> list[Instruction]:
    return [parse_instruction(line, logger=logger) for line in script_lines(text)]


def filter_flash_all(text: str, prefixes: Sequence[str] = ("fastboot ", "sleep")) -> str:
    """Keep only the fastboot and sleep lines of a shell flash-all script."""
    lines = (line.strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line.startswith(tuple(prefixes)))
