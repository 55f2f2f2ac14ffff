"""Client commands, their names and the line parser used by the interactive client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

MAX_MUTEXES = 20
MAX_CLIENTS = 20
BUFFER_SIZE = 2048
SERVER_PORT = 8080
MAX_MUTEX_NAME = 64
MAX_MSG_SIZE = 1024

INVALID_COMMAND_TEXT = "Invalid command. Type 'help' for available commands."


class CommandType(IntEnum):
    """Kinds of request a client can make; the values are those used on the wire."""

    HELP = 0
    CREATE = 1
    LOCK = 2
    UNLOCK = 3
    LIST = 4
    DELETE = 5
    SEND = 6
    EXIT = 7
    INVALID = 8


_NAMED_COMMANDS = frozenset(
    {CommandType.CREATE, CommandType.LOCK, CommandType.UNLOCK, CommandType.DELETE, CommandType.SEND}
)


@dataclass
class Command:
    """One request from a client."""

    type: CommandType
    mutex_name: str = ""
    message: str = ""
    client_pid: int = 0


class CommandError(ValueError):
    """Raised when a command line cannot be turned into a request."""


def parse_command(word: str | None) -> CommandType:
    """Map a command word, ignoring case, to its type; unknown words give INVALID."""
    if not word:
        return CommandType.INVALID
    try:
        command_type = CommandType[word.upper()]
    except KeyError:
        return CommandType.INVALID
    return command_type


def command_to_string(command_type: int) -> str:
    """Upper-case name of a command type, or 'INVALID' for anything unknown."""
    try:
        return CommandType(command_type).name
    except ValueError:
        return CommandType.INVALID.name


def help_text() -> str:
    """The help listing shown by the client."""
    return (
        "\nAvailable commands:\n"
        "help                 - Show this help message\n"
        "create <mutex_name>  - Create a new mutex\n"
        "lock <mutex_name>    - Lock a mutex (gain ownership)\n"
        "unlock <mutex_name>  - Unlock a mutex (release ownership)\n"
        "list                 - List all mutexes and their status\n"
        "delete <mutex_name>  - Delete a mutex\n"
        "send <mutex> <msg>   - Send message (requires ownership)\n"
        "exit                 - Exit the client\n\n"
    )


def parse_line(line: str, client_pid: int) -> Command | None:
    """Parse one line of user input.

    Returns None for a blank line and raises CommandError for a line that
    names no known command or lacks a required argument.
    """
    text = line.split("\n", 1)[0].lstrip(" ")
    if not text:
        return None

    word, _, rest = text.partition(" ")
    command_type = parse_command(word)
    if command_type is CommandType.INVALID:
        raise CommandError(INVALID_COMMAND_TEXT)

    command = Command(type=command_type, client_pid=client_pid)
    if command_type not in _NAMED_COMMANDS:
        return command

    rest = rest.lstrip(" ")
    if not rest:
        raise CommandError(
            f"Error: Mutex name required for command '{command_to_string(command_type)}'"
        )
    name, _, remainder = rest.partition(" ")
    command.mutex_name = name[: MAX_MUTEX_NAME - 1]

    if command_type is CommandType.SEND:
        if not remainder:
            raise CommandError("Error: Message required for 'send' command")
        command.message = remainder[: MAX_MSG_SIZE - 1]
    return command