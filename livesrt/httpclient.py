"""Small non-blocking HTTP/1.1 client used for event and statistics posts."""

from __future__ import annotations

import select
import socket
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Optional

from livesrt.log import LogLevel, get_logger
from livesrt.ringbuffer import ByteRing

HTTP_DATA_SIZE = 4096
INVALID_CLIENT_ID = 0
HTTP_RESPONSE_CODE_200 = "200"

_HEADER_ACCEPT = "Accept: text/html, */*\r\n"
_HEADER_USER_AGENT = "User-Agent: srt-live-server\r\n"
_HEADER_CONTENT_TYPE = "Content-Type: application/json\r\n"
_HEADER_CONNECTION = "Connection: Keep-Alive\r\n"
_HEADER_CACHE_CONTROL = "Cache-Control: no-cache\r\n"

_SELECT_TIMEOUT_S = 0.01


class CallbackStage(IntEnum):
    OPEN = 0
    CLOSE = 1
    RESPONSE_END = 2
    REQUEST_CONTENT = 3


@dataclass
class ResponseInfo:
    """What has been received of the current response."""

    header: list[str] = field(default_factory=list)
    code: str = ""
    content: str = ""
    content_length: int = -1

    def reset(self) -> None:
        self.header = []
        self.content = ""
        self.content_length = -1


# callback(client, stage, value); for REQUEST_CONTENT the returned string is the body.
StageCallback = Callable[["HttpClient", CallbackStage, Any], Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _atoi(text: str) -> int:
    """Leading integer of *text*, 0 if there is none."""
    s = text.lstrip()
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    digits = ""
    for ch in s:
        if not ch.isdigit():
            break
        digits += ch
    return sign * int(digits) if digits else 0


def parse_url(url: str) -> tuple[str, int, str]:
    """Split an ``http://host[:port][/path]`` URL into (host, port, uri)."""
    if not url:
        raise ValueError("empty url")
    scheme, sep, rest = url.partition(":")
    if not sep:
        raise ValueError(f"no ':' in url '{url}'")
    if scheme != "http":
        raise ValueError(f"not 'http' prefix, url='{url}'")
    rest = rest[2:]  # skip '//'

    host, colon, after = rest.partition(":")
    if colon:
        port_text, slash, path = after.partition("/")
        return host, _atoi(port_text), ("/" + path) if slash else ""
    host, slash, path = rest.partition("/")
    return host, 80, ("/" + path) if slash else ""


def build_request_header(method: str, uri: str, host: str, data_len: int) -> str:
    """Return the request line and headers, ending with the blank line."""
    if method not in ("GET", "POST"):
        raise ValueError(f"wrong method='{method}'")
    header = f"{method} {uri} HTTP/1.1\r\n"
    header += _HEADER_ACCEPT + _HEADER_USER_AGENT + _HEADER_CONTENT_TYPE
    header += f"Host: {host}\r\n"
    if data_len > 0:
        header += f"Content-Length: {data_len}\r\n"
    header += _HEADER_CONNECTION + _HEADER_CACHE_CONTROL + "\r\n"
    return header


class HttpClient:
    """Sends one request per open and collects the response without blocking."""

    def __init__(self) -> None:
        self.id = INVALID_CLIENT_ID
        self.url = ""
        self.uri = ""
        self.remote_host = ""
        self.remote_port = 80
        self.method = "POST"
        self.begin_tm_ms = 0
        self.end_tm_ms = 0
        self.timeout = 5  # seconds
        self.interval = 0  # seconds; 0 means no repeat
        self.response = ResponseInfo()
        self.role_name = "http_client"

        self._sock: Optional[socket.socket] = None
        self._out = ByteRing()
        self._pending = b""
        self._callback: Optional[StageCallback] = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def set_stage_callback(self, callback: Optional[StageCallback]) -> None:
        """Register the function told about each stage of a request."""
        self._callback = callback

    def _notify(self, stage: CallbackStage, value: Any = None) -> Any:
        if self._callback is None:
            return None
        return self._callback(self, stage, value)

    def open(self, url: str, method: Optional[str] = None, interval: int = 0) -> None:
        """Connect to *url*, queue the request and start sending it."""
        self.begin_tm_ms = _now_ms()
        error: Optional[Exception] = None
        try:
            self._open(url, method, interval)
        except Exception as exc:
            error = exc
            get_logger().log(LogLevel.INFO, "HttpClient.open, failed, url='%s': %s", url, exc)
            raise
        finally:
            self._notify(CallbackStage.OPEN, error)

    def _open(self, url: str, method: Optional[str], interval: int) -> None:
        self.url = url
        if not url:
            raise ValueError("empty url")
        if method:
            self.method = method
        self.interval = interval

        host, port, uri = parse_url(url)
        self.remote_host, self.remote_port, self.uri = host, port, uri
        ip = socket.gethostbyname(host)
        self._connect(ip, port)

        self.response.reset()
        self.end_tm_ms = 0
        self._out.clear()
        self._pending = b""

        self._generate_request()
        self.handler()

    def _connect(self, ip: str, port: int) -> None:
        self._close_socket()
        sock = socket.create_connection((ip, port), timeout=self.timeout)
        sock.setblocking(False)
        self._sock = sock

    def _close_socket(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def _generate_request(self) -> None:
        content = self._notify(CallbackStage.REQUEST_CONTENT) or ""
        body = content.encode("utf-8")
        header = build_request_header(self.method, self.uri, self.remote_host, len(body))
        self._out.put(header.encode("latin-1"))
        if body:
            self._out.put(body)
        get_logger().log(
            LogLevel.INFO, "HttpClient, request ready, url='%s', content len=%d.", self.url, len(body)
        )

    def close(self) -> None:
        """Close the connection and forget any response."""
        get_logger().log(
            LogLevel.TRACE,
            "HttpClient.close, url='%s', content_length=%d.",
            self.url,
            self.response.content_length,
        )
        self._close_socket()
        self._notify(CallbackStage.CLOSE)
        self.response.reset()
        self.end_tm_ms = 0
        self._out.clear()
        self._pending = b""

    def reopen(self) -> None:
        """Close and send the same request again."""
        self.close()
        self.open(self.url, self.method, self.interval)

    def check_timeout(self, cur_tm_ms: int = 0) -> bool:
        """True when the request is over by timeout or the socket is gone."""
        if self._sock is None:
            return True
        if self.end_tm_ms > 0:
            return self.response.content_length != len(self.response.content)
        if cur_tm_ms == 0:
            cur_tm_ms = _now_ms()
        if cur_tm_ms - self.begin_tm_ms < self.timeout * 1000:
            return False
        self.end_tm_ms = cur_tm_ms
        self._notify(CallbackStage.RESPONSE_END, self.response)
        get_logger().log(
            LogLevel.INFO,
            "HttpClient.check_timeout, url='%s', method='%s', content_len=%d, content_length=%d.",
            self.url,
            self.method,
            len(self.response.content),
            self.response.content_length,
        )
        return True

    def check_repeat(self, cur_tm_ms: int = 0) -> bool:
        """True when a repeating client is due to send again."""
        if self.interval <= 0:
            return False
        if cur_tm_ms == 0:
            cur_tm_ms = _now_ms()
        return cur_tm_ms - self.begin_tm_ms >= self.interval * 1000

    def check_finished(self) -> bool:
        """True once the whole body arrived or the socket is closed."""
        if self.response.content_length == len(self.response.content):
            return True
        return self._sock is None

    def _response_end(self) -> None:
        self.end_tm_ms = _now_ms()
        self._notify(CallbackStage.RESPONSE_END, self.response)
        get_logger().log(
            LogLevel.INFO,
            "HttpClient, response finished, url='%s', method='%s', content_len=%d.",
            self.url,
            self.method,
            len(self.response.content),
        )

    def feed_response(self, data: str | bytes) -> bool:
        """Parse received response text; False if there was nothing to parse."""
        text = data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else data
        info = self.response

        if info.header:
            info.content += text
            if info.content_length == len(info.content):
                self._response_end()
            return True

        if not text:
            get_logger().log(LogLevel.TRACE, "HttpClient.feed_response, nothing to parse.")
            return False
        parts = text.split("\r\n\r\n", 1)

        info.header = parts[0].split("\r\n")
        status = info.header[0].split(" ")
        if len(status) == 3:
            info.code = status[1]
        length_line = next((h for h in info.header if "Content-Length:" in h), "")
        if length_line:
            name_value = length_line.split(":", 1)
            if len(name_value) == 2:
                info.content_length = _atoi(name_value[1])

        if len(parts) == 2:
            info.content = parts[1]
            if info.content_length == len(info.content):
                self._response_end()
        return True

    def recv(self) -> bool:
        """Read everything available and parse it."""
        if self._sock is None:
            return False
        chunks = []
        while True:
            try:
                chunk = self._sock.recv(HTTP_DATA_SIZE)
            except (BlockingIOError, InterruptedError):
                break
            if not chunk:
                break
            chunks.append(chunk)
        received = b"".join(chunks)
        if not received:
            return True
        result = self.feed_response(received)
        if self.check_finished():
            get_logger().log(LogLevel.INFO, "HttpClient.recv, finished.")
        return result

    def send(self) -> int:
        """Write queued request bytes; return how many were written."""
        if self._sock is None:
            return 0
        written = 0
        while True:
            if not self._pending:
                if len(self._out) == 0:
                    break
                self._pending = self._out.get(HTTP_DATA_SIZE)
                if not self._pending:
                    break
            try:
                n = self._sock.send(self._pending)
            except (BlockingIOError, InterruptedError):
                break
            if n <= 0:
                break
            written += n
            self._pending = self._pending[n:]
            if self._pending:
                break  # network busy, try later
        return written

    def handler(self) -> None:
        """Wait briefly for the socket, then send and receive what is ready."""
        if self._sock is None:
            return
        readable, writable, _ = select.select([self._sock], [self._sock], [], _SELECT_TIMEOUT_S)
        if writable:
            self.send()
        if readable:
            self.recv()