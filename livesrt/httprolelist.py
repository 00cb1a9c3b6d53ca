"""Thread-safe queue of HTTP clients waiting to be picked up by a worker."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional

from livesrt.httpclient import HttpClient
from livesrt.log import LogLevel, get_logger


class HttpClientList:
    """FIFO of HTTP clients shared between threads."""

    def __init__(self) -> None:
        self._clients: Deque[HttpClient] = deque()
        self._lock = threading.Lock()

    def push(self, client: Optional[HttpClient]) -> None:
        """Append *client* to the back; ``None`` is ignored."""
        if client is None:
            return
        with self._lock:
            self._clients.append(client)

    def pop(self) -> Optional[HttpClient]:
        """Remove and return the oldest client, or ``None`` when empty."""
        with self._lock:
            return self._clients.popleft() if self._clients else None

    def erase(self) -> None:
        """Close every queued client and empty the list."""
        with self._lock:
            get_logger().log(
                LogLevel.TRACE, "HttpClientList.erase, list.count=%d", len(self._clients)
            )
            while self._clients:
                self._clients.popleft().close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)