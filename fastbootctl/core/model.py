"""Core data models used across the protocol engine, interpreter, and flasher."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from fastbootctl.core.errors import ProtocolError


class ResponseStatus(str, Enum):
    OKAY = "OKAY"
    FAIL = "FAIL"
    DATA = "DATA"
    INFO = "INFO"
    TEXT = "TEXT"

    @property
    def is_terminal(self) -> bool:
        return self in (ResponseStatus.OKAY, ResponseStatus.FAIL)

    @property
    def is_informational(self) -> bool:
        return self in (ResponseStatus.INFO, ResponseStatus.TEXT)


@dataclass(frozen=True)
class CommandPacket:
    text: str


@dataclass(frozen=True)
class ResponsePacket:
    status: ResponseStatus
    message: str = ""
    data_length: int | None = None


Packet = CommandPacket | ResponsePacket


@dataclass
class Session:
    """One command/response exchange.

    A session is active while its last packet is anything but a terminal
    response. Once an OKAY or FAIL packet is appended the session is closed
    and rejects further packets.
    """

    status: ResponseStatus | None = None
    packets: list[Packet] = field(default_factory=list)

    @property
    def last_packet(self) -> Packet | None:
        if not self.packets:
            return None
        return self.packets[-1]

    @property
    def is_active(self) -> bool:
        last = self.last_packet
        if last is None:
            return False
        return not (isinstance(last, ResponsePacket) and last.status.is_terminal)

    @property
    def is_terminated(self) -> bool:
        return self.status is not None

    def append(self, packet: Packet) -> None:
        if self.is_terminated:
            raise ProtocolError(f"Session already terminated with {self.status.value}")
        self.packets.append(packet)
        if isinstance(packet, ResponsePacket) and packet.status.is_terminal:
            self.status = packet.status


class Slot(str, Enum):
    CURRENT = "current"
    OTHER = "other"
    A = "a"
    B = "b"


class Command(str, Enum):
    UPDATE = "update"
    FLASHALL = "flashall"
    FLASH = "flash"
    FLASHING = "flashing"
    ERASE = "erase"
    FORMAT = "format"
    GETVAR = "getvar"
    SET_ACTIVE = "set_active"
    BOOT = "boot"
    DEVICES = "devices"
    CONTINUE = "continue"
    REBOOT = "reboot"
    REBOOT_BOOTLOADER = "reboot-bootloader"
    HELP = "help"
    SLEEP = "sleep"
    OEM = "oem"


@dataclass(frozen=True)
class InstructionOptions:
    wipe: bool = False
    set_active: Slot | None = None
    slot: Slot | None = None
    skip_reboot: bool = False
    apply_vbmeta: bool = False


@dataclass(frozen=True)
class Instruction:
    command: Command
    args: tuple[str, ...] = ()
    options: InstructionOptions = InstructionOptions()


@dataclass(frozen=True)
class DetectedDevice:
    serial: str
    product: str
