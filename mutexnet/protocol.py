"""Binary framing between client and server: a PID, then fixed-size command records."""

from __future__ import annotations

import struct

from mutexnet.commands import MAX_MSG_SIZE, MAX_MUTEX_NAME, Command, CommandType

_PID = struct.Struct("<i")
_COMMAND = struct.Struct(f"<i{MAX_MUTEX_NAME}s{MAX_MSG_SIZE}si")

PID_SIZE = _PID.size
COMMAND_SIZE = _COMMAND.size


class ProtocolError(ValueError):
    """Raised for data that is not a valid frame."""


def _encode_text(text: str, size: int) -> bytes:
    raw = text.encode("utf-8")[: size - 1]
    return raw.decode("utf-8", "ignore").encode("utf-8")


def _decode_text(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def encode_pid(pid: int) -> bytes:
    """The greeting a client sends first: its PID as a 32-bit integer."""
    try:
        return _PID.pack(pid)
    except struct.error as exc:
        raise ProtocolError(f"pid out of range: {pid}") from exc


def decode_pid(data: bytes) -> int:
    """Read a client's greeting."""
    if len(data) != PID_SIZE:
        raise ProtocolError(f"expected {PID_SIZE} bytes for a pid, got {len(data)}")
    return _PID.unpack(data)[0]


def encode_command(command: Command) -> bytes:
    """Pack a command into a fixed-size record; long texts are cut to fit."""
    try:
        return _COMMAND.pack(
            int(command.type),
            _encode_text(command.mutex_name, MAX_MUTEX_NAME),
            _encode_text(command.message, MAX_MSG_SIZE),
            command.client_pid,
        )
    except struct.error as exc:
        raise ProtocolError(str(exc)) from exc


def decode_command(data: bytes) -> Command:
    """Unpack a command record; unknown type codes become INVALID."""
    if len(data) != COMMAND_SIZE:
        raise ProtocolError(f"expected {COMMAND_SIZE} bytes for a command, got {len(data)}")
    type_code, name, message, client_pid = _COMMAND.unpack(data)
    try:
        command_type = CommandType(type_code)
    except ValueError:
        command_type = CommandType.INVALID
    return Command(
        type=command_type,
        mutex_name=_decode_text(name),
        message=_decode_text(message),
        client_pid=client_pid,
    )