"""Fastboot request/response engine over a bound USB endpoint pair.

Wire format:

* commands are raw ASCII text, one command per OUT transfer;
* every response starts with a 4-byte status (OKAY, FAIL, DATA, INFO, TEXT);
  DATA carries an 8 hex digit byte count, the others a free-text message;
* download payloads follow a DATA response as plain 16 KiB bulk chunks.
"""

from __future__ import annotations

import logging
from typing import Protocol

from fastbootctl.core.errors import BusyError, DeviceError, ProtocolError
from fastbootctl.core.model import CommandPacket, Packet, ResponsePacket, ResponseStatus, Session

LOGGER = logging.getLogger(__name__)

RESPONSE_PACKET_SIZE = 256
BULK_TRANSFER_SIZE = 16384
MAX_TRANSFER_SIZE = 0xFFFFFFFF
_PROGRESS_EVERY_CHUNKS = 1000
_PADDING = " \t\r\n\x00"


class Binding(Protocol):
    serial_number: str

    @property
    def opened(self) -> bool: ...

    def connect(self) -> None: ...

    def wait_for_reconnect(self) -> bool: ...

    def read(self, length: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...


def decode_packet(data: bytes) -> ResponsePacket:
    text = bytes(data).decode("ascii", errors="replace")
    try:
        status = ResponseStatus(text[:4])
    except ValueError:
        raise ProtocolError(f"invalid packet: {text!r}") from None

    if status is ResponseStatus.DATA:
        length_hex = text[4:12]
        try:
            if len(length_hex) != 8:
                raise ValueError(length_hex)
            data_length = int(length_hex, 16)
        except ValueError:
            raise ProtocolError(f"invalid DATA length in packet: {text!r}") from None
        return ResponsePacket(
            status=status,
            message=f"ready to transfer {data_length} bytes",
            data_length=data_length,
        )

    return ResponsePacket(status=status, message=text[4:].strip(_PADDING))


class FastbootDevice:
    """Half-duplex fastboot engine: at most one command in flight."""

    def __init__(self, binding: Binding, *, logger: logging.Logger | None = None) -> None:
        self.binding = binding
        self.logger = logger or LOGGER
        self.session = Session()
        self.sessions: list[Session] = []

    @property
    def serial_number(self) -> str:
        return self.binding.serial_number

    @property
    def last_packet(self) -> Packet | None:
        return self.session.last_packet

    @property
    def is_active(self) -> bool:
        return self.session.is_active

    def exec(self, command: str) -> ResponsePacket:
        if self.is_active:
            raise BusyError("fastboot device is busy")
        if not self.binding.opened:
            self.binding.connect()

        self.sessions.append(self.session)
        self.session = Session()
        return self.send_command(command)

    def send_command(self, text: str) -> ResponsePacket:
        self.session.append(CommandPacket(text=text))
        self.logger.debug('transferring "%s"', text)
        self.binding.write(text.encode("ascii"))
        return self._drain()

    def get_packet(self) -> ResponsePacket:
        return decode_packet(self.binding.read(RESPONSE_PACKET_SIZE))

    def _drain(self) -> ResponsePacket:
        while True:
            packet = self.get_packet()
            self.session.append(packet)
            if packet.status.is_informational:
                self.logger.info("(bootloader) %s", packet.message)
                continue
            self.logger.debug("[%s] %s", packet.status.value, packet.message)
            break

        if packet.status is ResponseStatus.FAIL:
            raise DeviceError(packet.status.value, packet.message)
        return packet

    def get_var(self, name: str) -> str:
        return self.exec(f"getvar:{name}").message

    def transfer_data(self, buffer: bytes | bytearray | memoryview) -> ResponsePacket:
        size = len(buffer)
        xfer_hex = f"{size:08x}"
        if size > MAX_TRANSFER_SIZE:
            raise DeviceError("FAIL", f"Transfer size overflow: {xfer_hex} is more than 8 digits")

        self.logger.debug("Sending command download:%s", xfer_hex)
        response = self.exec(f"download:{xfer_hex}")
        if response.status is not ResponseStatus.DATA:
            raise DeviceError(
                "FAIL",
                f"response to download:{xfer_hex} is {response.status.value}. Expected DATA.",
            )
        if response.data_length != size:
            raise DeviceError(
                "FAIL",
                f"Bootloader wants {response.data_length} bytes, requested to send {size} bytes",
            )

        self.logger.info("Sending payload: %d bytes", size)
        view = memoryview(buffer).cast("B")
        offset = 0
        index = 0
        while offset < size:
            chunk = view[offset:offset + BULK_TRANSFER_SIZE]
            if index % _PROGRESS_EVERY_CHUNKS == 0:
                self.logger.debug(
                    "Sending %d bytes to endpoint, %d remaining, i=%d",
                    len(chunk),
                    size - offset,
                    index,
                )
            self.binding.write(bytes(chunk))
            offset += len(chunk)
            index += 1

        self.logger.debug("Payload sent, waiting for response...")
        return self._drain()

    def wait_for_reconnect(self) -> bool:
        return self.binding.wait_for_reconnect()
