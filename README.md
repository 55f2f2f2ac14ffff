# mutexnet

mutexnet is a small server that keeps a shared table of named mutexes. Clients
connect over TCP, create mutexes and lock them. A client that holds a mutex can
send a message through it. A second port serves the current table as JSON.

## Installing

```
pip install .
```

## Running the server

```
mutexnet-server [--host HOST] [--port PORT] [--web-port WEB_PORT]
```

By default the server listens on all interfaces (`0.0.0.0`). Mutex clients use
port 8080. The web port defaults to the mutex port plus one, so 8081. Ctrl+C or
SIGTERM stops the server and closes both sockets.

The web port answers only requests that contain `GET /mutexes`. Any other
request gets no reply, and the connection is closed. The reply is a JSON
document like this:

```
{"mutexes":[{"name":"jobs","owner":4242,"locked":true,"last_message":"hello"}]}
```

`last_message` shows the first 50 characters of the last message sent through
the mutex. Names and messages are inserted as they are, without escaping. Avoid
quotes and backslashes in them if you want the output to stay valid JSON.

The table holds at most 20 mutexes. Mutex names are cut to 63 characters, and
messages to 1023.

## Running a client

```
mutexnet-client [--host HOST] [--port PORT]
```

The client connects to `127.0.0.1:8080` unless told otherwise. It identifies
itself by its process id and then reads commands from the keyboard:

| Command              | Effect                                       |
|----------------------|----------------------------------------------|
| `help`               | Show the list of commands                    |
| `create <name>`      | Create a new mutex, owned by you             |
| `lock <name>`        | Lock a mutex and take ownership of it        |
| `unlock <name>`      | Unlock a mutex you hold                      |
| `list`               | Show every mutex with its owner and status   |
| `delete <name>`      | Delete a mutex that nobody else holds locked |
| `send <name> <msg>`  | Send a message through a mutex you hold      |
| `exit`               | Disconnect and quit                          |

Command words are not case-sensitive. While another client holds a lock on any
mutex, you cannot lock a mutex. Locking a mutex that you already hold succeeds.
End of input (Ctrl+D) quits the same way `exit` does.

## Using it from Python

The mutex table can be used without the network:

```python
from mutexnet.registry import MutexRegistry, OtherLockHeldError

registry = MutexRegistry(20)
registry.create("jobs", client_pid=100)
registry.lock("jobs", client_pid=100)
try:
    registry.lock("jobs", client_pid=200)
except OtherLockHeldError:
    pass
receipt = registry.send("jobs", 100, "hello")
print(receipt.response)
print(registry.list_table())
```

Each failed registry operation raises a subclass of
`mutexnet.registry.MutexError`:

- `InvalidNameError`
- `MutexLimitError`
- `MutexExistsError`
- `MutexNotFoundError`
- `LockedByOtherError`
- `OtherLockHeldError`
- `AlreadyUnlockedError`
- `NotOwnerError`

`MutexRegistry.has_permission` and `MutexRegistry.snapshot` inspect the table
without changing it.

`mutexnet.server.MutexServer` runs the server inside your own program. Pass
port 0 to let the system pick free ports. The chosen ports are then in `port`
and `web_port`. Call `serve_forever()` to handle connections, and `close()`,
from another thread, to stop. The server can also be used as a context manager.

`mutexnet.client.MutexClient` talks to a running server. Build commands with
`mutexnet.commands.parse_line` and pass them to `MutexClient.request`, which
returns the server's reply as text. `mutexnet.protocol` holds the binary
encoding used between the two.

## What it does not do

The table lives only in the server's memory and is lost when the server stops.
The web port serves JSON only. There is no HTML page or dashboard.

## Tests

```
pip install .[test]
pytest
```