"""Mutex server: a command port for clients and a small HTTP port with a JSON view."""

from __future__ import annotations

import argparse
import selectors
import signal
import socket
import threading

from mutexnet.commands import (
    BUFFER_SIZE,
    INVALID_COMMAND_TEXT,
    MAX_CLIENTS,
    SERVER_PORT,
    Command,
    CommandType,
)
from mutexnet.protocol import COMMAND_SIZE, PID_SIZE, ProtocolError, decode_command, decode_pid
from mutexnet.registry import (
    AlreadyUnlockedError,
    LockedByOtherError,
    MutexError,
    MutexLimitError,
    MutexRegistry,
    NotOwnerError,
    OtherLockHeldError,
)

HELP_REPLY = "Available commands: create, lock, unlock, list, delete, send"
GOODBYE = "Goodbye!"
_WEB_LISTEN_BACKLOG = 5
_JSON_ITEM_LIMIT = 255
_HTTP_HEADER = (
    "HTTP/1.1 200 OK\r\n"
    "Content-Type: application/json\r\n"
    "Access-Control-Allow-Origin: *\r\n"
    "Connection: close\r\n\r\n"
)


def _reply_create(registry: MutexRegistry, name: str, client_pid: int) -> str:
    try:
        registry.create(name, client_pid)
    except MutexLimitError:
        return "Cannot create mutex: maximum limit reached"
    except MutexError:
        return f"Mutex '{name}' already exists"
    return f"Mutex '{name}' created"


def _reply_lock(registry: MutexRegistry, name: str, client_pid: int) -> str:
    try:
        registry.lock(name, client_pid)
    except LockedByOtherError:
        return f"Mutex '{name}' already locked by another client"
    except OtherLockHeldError:
        return "Cannot lock: mutex was locked by another client"
    except MutexError:
        return f"Mutex '{name}' not found"
    return f"Mutex '{name}' locked"


def _reply_unlock(registry: MutexRegistry, name: str, client_pid: int) -> str:
    try:
        registry.unlock(name, client_pid)
    except AlreadyUnlockedError:
        return f"Mutex '{name}' already unlocked"
    except NotOwnerError:
        return f"Cannot unlock: you don't own mutex '{name}'"
    except MutexError:
        return f"Mutex '{name}' not found"
    return f"Mutex '{name}' unlocked"


def _reply_delete(registry: MutexRegistry, name: str, client_pid: int) -> str:
    try:
        registry.delete(name, client_pid)
    except LockedByOtherError:
        return f"Cannot delete: mutex '{name}' is locked by another client"
    except MutexError:
        return f"Mutex '{name}' not found"
    return f"Mutex '{name}' deleted"


def _reply_send(registry: MutexRegistry, command: Command) -> str:
    try:
        receipt = registry.send(command.mutex_name, command.client_pid, command.message)
    except MutexError as exc:
        detailed = str(exc)
        print(detailed[:200])
        print(f"Sending message to PID {command.client_pid}")
        return detailed[: BUFFER_SIZE - 1]
    print(receipt.response[:200])
    print(f"Sending message to PID {command.client_pid}")
    text = f"SUCCESS:\n{receipt.response}\nSERVER REPLY:\n{receipt.welcome}"
    return text[: BUFFER_SIZE - 1]


def respond(registry: MutexRegistry, command: Command, client_pid: int) -> str:
    """The reply text the server sends for one command from a client."""
    name = command.mutex_name
    kind = command.type
    if kind is CommandType.HELP:
        return HELP_REPLY
    if kind is CommandType.CREATE:
        return _reply_create(registry, name, client_pid)
    if kind is CommandType.LOCK:
        return _reply_lock(registry, name, client_pid)
    if kind is CommandType.UNLOCK:
        return _reply_unlock(registry, name, client_pid)
    if kind is CommandType.LIST:
        return registry.list_table()
    if kind is CommandType.DELETE:
        return _reply_delete(registry, name, client_pid)
    if kind is CommandType.SEND:
        return _reply_send(registry, command)
    if kind is CommandType.EXIT:
        return GOODBYE
    return INVALID_COMMAND_TEXT


def web_response(registry: MutexRegistry, request: bytes | str) -> bytes | None:
    """The HTTP reply for a web request, or None when it is not GET /mutexes."""
    if isinstance(request, bytes):
        request = request.decode("latin-1")
    if "GET /mutexes" not in request:
        return None
    text = _HTTP_HEADER + '{"mutexes":['
    for index, record in enumerate(registry.snapshot()):
        item = (
            ("," if index else "")
            + f'{{"name":"{record.name}","owner":{record.owner_pid},'
            + f'"locked":{"true" if record.is_locked else "false"},'
            + f'"last_message":"{record.last_message[:50]}"}}'
        )
        text += item[:_JSON_ITEM_LIMIT]
        text = text[: BUFFER_SIZE - 1]
    text += "]}"
    return text.encode("utf-8")


def _recv_exact(conn: socket.socket, size: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = conn.recv(size - len(chunks))
        if not chunk:
            break
        chunks += chunk
    return bytes(chunks)


class MutexServer:
    """Listens for mutex clients and web clients and serves them until closed."""

    def __init__(
        self,
        registry: MutexRegistry | None = None,
        host: str = "0.0.0.0",
        port: int = SERVER_PORT,
        web_port: int | None = None,
    ) -> None:
        self.registry = registry if registry is not None else MutexRegistry()
        if web_port is None:
            web_port = port + 1 if port else 0
        self._stopping = threading.Event()
        self._closed = False
        self._server_socket = self._listen(host, port, MAX_CLIENTS)
        try:
            self._web_socket = self._listen(host, web_port, _WEB_LISTEN_BACKLOG)
        except OSError:
            self._server_socket.close()
            raise
        self.host = host
        self.port = self._server_socket.getsockname()[1]
        self.web_port = self._web_socket.getsockname()[1]

    @staticmethod
    def _listen(host: str, port: int, backlog: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(backlog)
        except OSError:
            sock.close()
            raise
        return sock

    def __enter__(self) -> MutexServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def serve_forever(self) -> None:
        """Accept connections until close() is called."""
        with selectors.DefaultSelector() as selector:
            selector.register(self._server_socket, selectors.EVENT_READ, self._accept_client)
            selector.register(self._web_socket, selectors.EVENT_READ, self._accept_web)
            while not self._stopping.is_set():
                try:
                    events = selector.select(timeout=0.2)
                except (OSError, ValueError):
                    continue
                for key, _ in events:
                    try:
                        key.data()
                    except OSError:
                        if self._stopping.is_set():
                            break

    def _accept_client(self) -> None:
        conn, _ = self._server_socket.accept()
        threading.Thread(target=self._handle_client, args=(conn,), daemon=True).start()

    def _accept_web(self) -> None:
        conn, _ = self._web_socket.accept()
        self._handle_web_client(conn)

    def _handle_client(self, conn: socket.socket) -> None:
        with conn:
            try:
                client_pid = decode_pid(_recv_exact(conn, PID_SIZE))
            except (ProtocolError, OSError) as exc:
                print(f"Failed to receive client PID: {exc}")
                return
            print(f"Client connected (PID: {client_pid})")
            while True:
                try:
                    data = _recv_exact(conn, COMMAND_SIZE)
                except OSError as exc:
                    print(f"recv failed: {exc}")
                    return
                if len(data) != COMMAND_SIZE:
                    print(f"Client (PID: {client_pid}) disconnected")
                    return
                command = decode_command(data)
                reply = respond(self.registry, command, client_pid)
                if command.type is CommandType.EXIT:
                    print(f"Client (PID: {client_pid}) requested exit")
                try:
                    conn.sendall(reply.encode("utf-8"))
                except OSError as exc:
                    print(f"send failed: {exc}")
                    return
                if command.type is CommandType.EXIT:
                    return

    def _handle_web_client(self, conn: socket.socket) -> None:
        with conn:
            try:
                request = conn.recv(BUFFER_SIZE)
            except OSError:
                return
            if not request:
                return
            reply = web_response(self.registry, request)
            if reply is not None:
                try:
                    conn.sendall(reply)
                except OSError:
                    pass

    def close(self) -> None:
        """Stop serving and close both listening sockets."""
        self._stopping.set()
        if self._closed:
            return
        self._closed = True
        self._server_socket.close()
        self._web_socket.close()
        print("Server sockets closed")


def _raise_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


def main(argv: list[str] | None = None) -> int:
    """Run the mutex server until interrupted."""
    parser = argparse.ArgumentParser(description="Serve named mutexes to clients.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=SERVER_PORT)
    parser.add_argument("--web-port", type=int, default=None)
    args = parser.parse_args(argv)

    try:
        server = MutexServer(MutexRegistry(), args.host, args.port, args.web_port)
    except OSError as exc:
        print(f"bind failed: {exc}")
        return 1

    signal.signal(signal.SIGTERM, _raise_interrupt)
    print(f"Server started:\n- Mutex port: {server.port}\n- Web port: {server.web_port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nServer shutting down...")
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())