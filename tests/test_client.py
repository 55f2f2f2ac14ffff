import io
import socket
import threading

import pytest

from mutexnet.client import MutexClient, main, send_preview
from mutexnet.commands import Command, CommandType
from mutexnet.registry import MutexRegistry
from mutexnet.server import GOODBYE, HELP_REPLY, MutexServer


@pytest.fixture
def running_server():
    server = MutexServer(MutexRegistry(), "127.0.0.1", 0, 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.close()
    thread.join(2)


def test_send_preview_short():
    command = Command(type=CommandType.SEND, mutex_name="lock1", message="hi", client_pid=7)
    assert send_preview(command) == "[PID:7] Sending via 'lock1': hi"


def test_send_preview_truncates():
    command = Command(
        type=CommandType.SEND, mutex_name="n" * 30, message="m" * 60, client_pid=1
    )
    preview = send_preview(command)
    assert preview.endswith("m" * 50 + "...")
    assert "'" + "n" * 20 + "'" in preview


def test_request_without_connect():
    client = MutexClient("127.0.0.1", 1, pid=3)
    with pytest.raises(ConnectionError):
        client.request(Command(type=CommandType.LIST, client_pid=3))


def test_client_round_trip(running_server):
    with MutexClient("127.0.0.1", running_server.port, pid=11) as client:
        help_reply = client.request(Command(type=CommandType.HELP, client_pid=11))
        assert help_reply == HELP_REPLY
        created = client.request(
            Command(type=CommandType.CREATE, mutex_name="k", client_pid=11)
        )
        assert created == "Mutex 'k' created"
        listing = client.request(Command(type=CommandType.LIST, client_pid=11))
        assert listing == running_server.registry.list_table()
    assert running_server.registry.snapshot()[0].owner_pid == 11


def test_send_exit_closes_session(running_server):
    client = MutexClient("127.0.0.1", running_server.port, pid=12)
    client.connect()
    client.send_exit()
    reply = client._socket.recv(64).decode()
    client.close()
    assert reply == GOODBYE


def test_main_session(running_server, monkeypatch, capsys):
    script = "\ncreate m\nlock m\nsend m hello there\nbogus\nunlock\nexit\n"
    monkeypatch.setattr("sys.stdin", io.StringIO(script))
    code = main(["--host", "127.0.0.1", "--port", str(running_server.port)])
    out = capsys.readouterr().out
    assert code == 0
    assert "Server: Mutex 'm' created" in out
    assert "Server: Mutex 'm' locked" in out
    assert "Sending via 'm': hello there" in out
    assert "Invalid command. Type 'help' for available commands." in out
    assert "Error: Mutex name required for command 'UNLOCK'" in out
    assert "exiting..." in out
    assert running_server.registry.snapshot()[0].last_message == "hello there"


def test_main_connection_failure(capsys):
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    code = main(["--host", "127.0.0.1", "--port", str(port)])
    out = capsys.readouterr().out
    assert code == 1
    assert "Connection Failed" in out