"""Interactive client that sends mutex commands to the server."""

from __future__ import annotations

import argparse
import os
import socket

from mutexnet.commands import (
    BUFFER_SIZE,
    SERVER_PORT,
    Command,
    CommandError,
    CommandType,
    help_text,
    parse_line,
)
from mutexnet.protocol import encode_command, encode_pid


class MutexClient:
    """One connection to the mutex server, identified by a PID."""

    def __init__(self, host: str = "127.0.0.1", port: int = SERVER_PORT, pid: int | None = None) -> None:
        self.host = host
        self.port = port
        self.pid = os.getpid() if pid is None else pid
        self._socket: socket.socket | None = None

    def __enter__(self) -> MutexClient:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _connection(self) -> socket.socket:
        if self._socket is None:
            raise ConnectionError("not connected")
        return self._socket

    def connect(self) -> None:
        """Open the connection and announce this client's PID."""
        sock = socket.create_connection((self.host, self.port))
        try:
            sock.sendall(encode_pid(self.pid))
        except OSError:
            sock.close()
            raise
        self._socket = sock

    def request(self, command: Command) -> str:
        """Send one command and return the server's reply."""
        sock = self._connection()
        sock.sendall(encode_command(command))
        data = sock.recv(BUFFER_SIZE - 1)
        if not data:
            raise ConnectionError("Server disconnected")
        return data.decode("utf-8", "replace")

    def send_exit(self) -> None:
        """Tell the server this client is leaving."""
        self._connection().sendall(
            encode_command(Command(type=CommandType.EXIT, client_pid=self.pid))
        )

    def close(self) -> None:
        """Close the connection, if open."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None


def send_preview(command: Command) -> str:
    """The line shown before a message is sent."""
    suffix = "..." if len(command.message) > 50 else ""
    return (
        f"[PID:{command.client_pid}] Sending via '{command.mutex_name[:20]}': "
        f"{command.message[:50]}{suffix}"
    )


def main(argv: list[str] | None = None) -> int:
    """Run the interactive client."""
    parser = argparse.ArgumentParser(description="Talk to the mutex server.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=SERVER_PORT)
    args = parser.parse_args(argv)

    client = MutexClient(args.host, args.port)
    print(f"Client started (PID: {client.pid})")
    print(help_text(), end="")

    try:
        client.connect()
    except OSError as exc:
        print(f"Connection Failed: {exc}")
        return 1

    try:
        while True:
            try:
                line = input(f"[PID:{client.pid}]> ")
            except EOFError:
                break
            try:
                command = parse_line(line, client.pid)
            except CommandError as exc:
                print(exc)
                continue
            if command is None:
                continue
            if command.type is CommandType.HELP:
                print(help_text(), end="")
                continue
            if command.type is CommandType.EXIT:
                try:
                    client.send_exit()
                except OSError:
                    pass
                break
            if command.type is CommandType.SEND:
                print(send_preview(command))
            try:
                reply = client.request(command)
            except ConnectionError as exc:
                print(exc)
                break
            except OSError as exc:
                print(f"send failed: {exc}")
                break
            print(f"Server: {reply}")
    finally:
        client.close()
        print(f"Client (PID: {client.pid}) exiting...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())