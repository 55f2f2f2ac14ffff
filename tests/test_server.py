import json
import socket
import threading

import pytest

from mutexnet.commands import BUFFER_SIZE, INVALID_COMMAND_TEXT, Command, CommandType
from mutexnet.protocol import encode_command, encode_pid
from mutexnet.registry import MutexRegistry
from mutexnet.server import GOODBYE, HELP_REPLY, MutexServer, respond, web_response


def cmd(kind, name="", message="", pid=1):
    return Command(type=kind, mutex_name=name, message=message, client_pid=pid)


@pytest.fixture
def registry():
    return MutexRegistry()


def test_help_and_invalid_and_exit(registry):
    assert respond(registry, cmd(CommandType.HELP), 1) == HELP_REPLY
    assert respond(registry, cmd(CommandType.INVALID), 1) == INVALID_COMMAND_TEXT
    assert respond(registry, cmd(CommandType.EXIT), 1) == GOODBYE


def test_create_replies(registry):
    assert respond(registry, cmd(CommandType.CREATE, "a"), 1) == "Mutex 'a' created"
    assert respond(registry, cmd(CommandType.CREATE, "a"), 2) == "Mutex 'a' already exists"
    assert respond(registry, cmd(CommandType.CREATE, ""), 1) == "Mutex '' already exists"


def test_create_limit():
    small = MutexRegistry(capacity=1)
    respond(small, cmd(CommandType.CREATE, "a"), 1)
    reply = respond(small, cmd(CommandType.CREATE, "b"), 1)
    assert reply == "Cannot create mutex: maximum limit reached"


def test_lock_replies(registry):
    assert respond(registry, cmd(CommandType.LOCK, "x"), 1) == "Mutex 'x' not found"
    respond(registry, cmd(CommandType.CREATE, "x"), 1)
    assert respond(registry, cmd(CommandType.LOCK, "x"), 1) == "Mutex 'x' locked"
    assert respond(registry, cmd(CommandType.LOCK, "x"), 1) == "Mutex 'x' locked"
    assert (
        respond(registry, cmd(CommandType.LOCK, "x"), 2)
        == "Cannot lock: mutex was locked by another client"
    )


def test_unlock_replies(registry):
    assert respond(registry, cmd(CommandType.UNLOCK, "x"), 1) == "Mutex 'x' not found"
    respond(registry, cmd(CommandType.CREATE, "x"), 1)
    assert respond(registry, cmd(CommandType.UNLOCK, "x"), 1) == "Mutex 'x' already unlocked"
    respond(registry, cmd(CommandType.LOCK, "x"), 1)
    assert (
        respond(registry, cmd(CommandType.UNLOCK, "x"), 2)
        == "Cannot unlock: you don't own mutex 'x'"
    )
    assert respond(registry, cmd(CommandType.UNLOCK, "x"), 1) == "Mutex 'x' unlocked"


def test_delete_replies(registry):
    assert respond(registry, cmd(CommandType.DELETE, "x"), 1) == "Mutex 'x' not found"
    respond(registry, cmd(CommandType.CREATE, "x"), 1)
    respond(registry, cmd(CommandType.LOCK, "x"), 1)
    assert (
        respond(registry, cmd(CommandType.DELETE, "x"), 2)
        == "Cannot delete: mutex 'x' is locked by another client"
    )
    assert respond(registry, cmd(CommandType.DELETE, "x"), 1) == "Mutex 'x' deleted"
    assert registry.snapshot() == []


def test_list_reply_matches_registry(registry):
    respond(registry, cmd(CommandType.CREATE, "alpha"), 1)
    reply = respond(registry, cmd(CommandType.LIST), 1)
    assert reply == registry.list_table()
    assert "alpha" in reply


def test_send_success(registry):
    respond(registry, cmd(CommandType.CREATE, "m", pid=5), 5)
    respond(registry, cmd(CommandType.LOCK, "m", pid=5), 5)
    reply = respond(registry, cmd(CommandType.SEND, "m", "hello", pid=5), 5)
    assert reply.startswith("SUCCESS:\nMessage received via mutex 'm' from PID 5: hello\n")
    assert "\nSERVER REPLY:\nWelcome client PID 5!" in reply
    assert registry.snapshot()[0].last_message == "hello"


def test_send_failure(registry):
    assert respond(registry, cmd(CommandType.SEND, "m", "hi"), 1) == "Mutex 'm' not found"
    respond(registry, cmd(CommandType.CREATE, "m"), 1)
    reply = respond(registry, cmd(CommandType.SEND, "m", "hi"), 1)
    assert reply == "Cannot send: you don't own mutex 'm'"


def test_send_reply_fits_buffer(registry):
    respond(registry, cmd(CommandType.CREATE, "m"), 1)
    respond(registry, cmd(CommandType.LOCK, "m"), 1)
    reply = respond(registry, cmd(CommandType.SEND, "m", "z" * 1000), 1)
    assert len(reply) <= BUFFER_SIZE - 1


def test_web_response_ignores_other_paths(registry):
    assert web_response(registry, b"GET /other HTTP/1.1\r\n\r\n") is None


def test_web_response_json(registry):
    registry.create("a", 3)
    registry.create("b", 4)
    registry.lock("b", 4)
    raw = web_response(registry, "GET /mutexes HTTP/1.1\r\n\r\n")
    head, _, body = raw.partition(b"\r\n\r\n")
    assert head.startswith(b"HTTP/1.1 200 OK")
    assert b"Content-Type: application/json" in head
    data = json.loads(body)
    assert data["mutexes"] == [
        {"name": "a", "owner": 3, "locked": False, "last_message": ""},
        {"name": "b", "owner": 4, "locked": True, "last_message": ""},
    ]


def test_web_response_empty(registry):
    raw = web_response(registry, b"GET /mutexes")
    assert json.loads(raw.partition(b"\r\n\r\n")[2]) == {"mutexes": []}


@pytest.fixture
def running_server():
    server = MutexServer(MutexRegistry(), "127.0.0.1", 0, 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.close()
    thread.join(2)


def _recv_reply(sock):
    return sock.recv(BUFFER_SIZE).decode()


def test_server_handles_client(running_server):
    with socket.create_connection(("127.0.0.1", running_server.port), timeout=5) as sock:
        sock.sendall(encode_pid(42))
        sock.sendall(encode_command(cmd(CommandType.CREATE, "net", pid=42)))
        assert _recv_reply(sock) == "Mutex 'net' created"
        sock.sendall(encode_command(cmd(CommandType.LOCK, "net", pid=42)))
        assert _recv_reply(sock) == "Mutex 'net' locked"
        sock.sendall(encode_command(cmd(CommandType.EXIT, pid=42)))
        assert _recv_reply(sock) == GOODBYE
    record = running_server.registry.snapshot()[0]
    assert (record.name, record.owner_pid, record.is_locked) == ("net", 42, True)


def test_server_web_port(running_server):
    running_server.registry.create("w", 9)
    with socket.create_connection(("127.0.0.1", running_server.web_port), timeout=5) as sock:
        sock.sendall(b"GET /mutexes HTTP/1.1\r\n\r\n")
        chunks = b""
        while chunk := sock.recv(4096):
            chunks += chunk
    body = json.loads(chunks.partition(b"\r\n\r\n")[2])
    assert body["mutexes"][0]["name"] == "w"
    assert body["mutexes"][0]["owner"] == 9