# livesrt

Building blocks for a live streaming relay server. A publisher sends a stream
under a `domain/app/stream` key, and players read it back. Relays either pull
the stream from upstream servers or push it on to them.

The package needs only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

### `livesrt.sync`

`RWLock` lets many readers or one writer hold it at a time. Writers that are
waiting go ahead of new readers. Use it through the context managers
`read_locked()` and `write_locked()`.

### `livesrt.log`

`Logger` writes lines of the form `YYYY-mm-dd HH:MM:SS:mmm SLS LEVEL: message`
to standard output, or to a stream you pass in.

- `Logger.log(level, fmt, *args)` formats the message with `%`. It writes the
  line only when `level` is at or below the logger's threshold, and returns the
  line it wrote. When the message is filtered out it returns `None`.
- `set_level(name)` takes a `LogLevel` name in any case (`FATAL`, `ERROR`,
  `WARNING`, `INFO`, `DEBUG`, `TRACE`). An unknown name leaves the level as it
  was.
- `set_file(path)` appends a copy of every line to `path`. Once a file is set,
  later calls are ignored. `close()` closes the file.

`get_logger()` returns the process-wide logger, which the other modules use.
Its default level is `INFO`.

### `livesrt.ringbuffer`

`ByteRing` is a thread-safe circular FIFO of bytes. It starts at 4096 bytes.

- `put(data)` appends the bytes and returns how many were stored. When the data
  does not fit, the ring grows by at least 4096 bytes. Empty data raises
  `ValueError`.
- `get(size)` removes up to `size` bytes and returns them in the order they
  went in.
- `len(ring)` gives the number of buffered bytes.
- `clear()` drops the data.
- `set_size(n)` replaces the storage with `n` bytes and discards any data.

### `livesrt.httpclient`

This is a small non-blocking HTTP/1.1 client for posting statistics and event
notifications.

- `parse_url(url)` splits `http://host[:port][/path]` into `(host, port, uri)`.
  The port defaults to 80. A URL that does not start with `http:` raises
  `ValueError`.
- `build_request_header(method, uri, host, data_len)` builds the request line
  and headers for `GET` or `POST`. It adds `Content-Length` only when
  `data_len > 0`. Any other method raises `ValueError`.
- `HttpClient.open(url, method=None, interval=0)` resolves the host and
  connects. It then queues the request and starts sending it. The default
  method is `POST`.
- `HttpClient.handler()` waits briefly on the socket, then sends and receives
  whatever is ready. You can also call `send()` and `recv()` yourself.
- `HttpClient.feed_response(data)` parses response text. It reads the status
  code and `Content-Length`, then adds body text until the whole body has
  arrived. The parsed response is kept in `client.response`, a `ResponseInfo`
  with the fields `header`, `code`, `content` and `content_length`.
- `check_finished()` is true once the body is complete or the socket is closed.
- `check_timeout(cur_tm_ms=0)` is true once the request has run out of time or
  the socket is gone. The timeout is `client.timeout` seconds, 5 by default.
- `check_repeat(cur_tm_ms=0)` is true when a client opened with
  `interval > 0` is due to send again.
- `close()` and `reopen()` end the request, or end it and send it again.
- `set_stage_callback(callback)` registers `callback(client, stage, value)`,
  where `stage` is a `CallbackStage`:
  - `OPEN` gets the exception that `open()` raised, or `None`.
  - `REQUEST_CONTENT` should return the request body as a string.
  - `RESPONSE_END` gets the `ResponseInfo`.
  - `CLOSE` is called when the client closes.

### `livesrt.httprolelist`

`HttpClientList` is a thread-safe FIFO of `HttpClient` objects. It has
`push()`, which ignores `None`, and `pop()`, which returns `None` when the
list is empty. It also has `erase()`, which closes every queued client and
empties the list, and `len()`.

### `livesrt.mappublisher`

`PublisherMap` holds three lookup tables:

- `set_live_to_uplive()` and `get_uplive()` map a player app (`host/live`) to
  its publisher app (`host/uplive`).
- `set_conf()` and `get_conf()` map a publisher app to its configuration.
- `set_publisher()` and `get_publisher()` map a stream key to the role that
  publishes it. `set_publisher()` raises `PublisherExistsError` when the stream
  already has a publisher.

`remove(role)` drops the stream that the role publishes and returns whether it
found one. `clear()` forgets every table.

### `livesrt.relaymanagers`

`RelayInfo` holds the relay settings of one publisher app:

- `type`: `"pull"` or `"push"`
- `mode`: a `RelayMode`, one of `LOOP`, `ALL` or `HASH`
- `reconnect_interval`
- `idle_streams_timeout`
- `upstreams`

The managers do not open connections themselves. A manager is given a
*connector*, a callable that takes an `srt://upstream/stream_name` URL and
returns the connected relay role. The returned role must have
`set_map_data`, `set_map_publisher` and `set_relay_manager`.

Before a manager can connect, set these attributes on it:

- `role_list`: an object with `push(role)`
- `map_publisher`: a `PublisherMap`
- `map_data`: an object with `add(key)`

- `PullerManager.start()` refuses a stream that already has a publisher. It
  then connects in one of two ways:
  - `LOOP` tries the upstreams in turn, starting after the one used last time.
  - `HASH` picks the upstream from a CRC-32 of the stream key.

  A relay that connects is registered as the stream's publisher.
- `PusherManager.start()` needs the stream to have a publisher. It then
  connects in one of two ways:
  - `ALL` pushes to every upstream. Failed URLs are kept in
    `pending_reconnects`.
  - `HASH` pushes to the upstream chosen by the hash.
- `add_reconnect_stream(url)` notes that a relay went away.
- `reconnect(cur_tm_ms)` tries again once `reconnect_interval` seconds have
  passed. It returns `True` on success.

Failures raise `RelayError`.

### `livesrt.maprelay`

`RelayMap(connector=None)` stores relay settings and managers:

- `add_relay_conf(app_uplive, relay_conf)` turns a `RelayConf` into a
  `RelayInfo`. The upstreams in a `RelayConf` are separated by spaces. An
  unknown mode falls back to `hash`. A second configuration for the same app
  raises `ValueError`.
- `get_relay_conf(app_uplive)` returns the stored `RelayInfo`.
- `add_relay_manager(app_uplive, stream_name)` returns the stream's manager and
  creates it on first use: a `PullerManager` for type `"pull"`, a
  `PusherManager` for `"push"`. It returns `None` when the app has no relay
  configuration or an unknown type.
- `clear()` forgets all managers and settings.

## Example

```python
from livesrt.httpclient import HttpClient, parse_url
from livesrt.maprelay import RelayConf, RelayMap
from livesrt.ringbuffer import ByteRing

ring = ByteRing()
ring.put(b"hello world")
assert ring.get(5) == b"hello"
assert len(ring) == 6

assert parse_url("http://localhost:8080/sls/stat") == ("localhost", 8080, "/sls/stat")

client = HttpClient()
client.feed_response("HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nok")
assert client.response.code == "200"
assert client.check_finished()

relays = RelayMap()
relays.add_relay_conf(
    "example.com/uplive",
    RelayConf(type="pull", mode="loop", upstreams="10.0.0.1:8080 10.0.0.2:8080"),
)
manager = relays.add_relay_manager("example.com/uplive", "cam1")
assert manager.key_stream_name == "example.com/uplive/cam1"
```

## What it does not do

There is no server and no command to run. The package has no SRT transport,
no listener that accepts publishers and players, no worker threads and no
store of stream data. The relay managers open connections only through the
connector you give them.