"""
Push channel for live reload.

Each connected browser holds an open text/event-stream response backed by its
own queue. The notifier is the only subscriber of the directory watcher and
re-broadcasts its "changed" signal to every client as a bare reload message.
"""

import logging
import queue
import threading
from typing import Iterator, Optional, Set

from shared.constants import EVENTS_KEEPALIVE_SEC

logger = logging.getLogger(__name__)

CONNECTED = "connected"
RELOAD = "reload"
_CLOSE = object()


class PushClient:
    """One open push channel."""

    def __init__(self):
        self.messages: "queue.Queue" = queue.Queue()

    def send(self, message) -> None:
        self.messages.put(message)


def format_event(message: str) -> str:
    return f"data: {message}\n\n"


class ChangeNotifier:
    """Set of live push clients with broadcast."""

    def __init__(self, keepalive: float = EVENTS_KEEPALIVE_SEC):
        self.keepalive = keepalive
        self._clients: Set[PushClient] = set()
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def connect(self) -> PushClient:
        """Register a client and queue its "connected" acknowledgement."""
        client = PushClient()
        client.send(CONNECTED)
        with self._lock:
            self._clients.add(client)
        logger.debug("Push client connected (%d open)", self.client_count)
        return client

    def disconnect(self, client: PushClient) -> None:
        with self._lock:
            self._clients.discard(client)
        logger.debug("Push client disconnected (%d open)", self.client_count)

    def broadcast(self, message: str = RELOAD) -> int:
        """Send a message to every open client. Returns the number reached."""
        with self._lock:
            clients = list(self._clients)
        for client in clients:
            client.send(message)
        return len(clients)

    def notify_changed(self) -> None:
        """Watcher callback: the music tree changed, tell everyone to reload."""
        reached = self.broadcast(RELOAD)
        logger.debug("Broadcast reload to %d client(s)", reached)

    def close_all(self) -> None:
        """End every open stream; used at shutdown."""
        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for client in clients:
            client.send(_CLOSE)

    def stream(self, client: PushClient) -> Iterator[str]:
        """
        Yield server-sent events for one client until it goes away.

        A comment line is written when idle so a dead connection surfaces as a
        write error; the client is removed when the generator is closed.
        """
        try:
            while True:
                try:
                    message: Optional[object] = client.messages.get(timeout=self.keepalive)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                if message is _CLOSE:
                    return
                yield format_event(message)
        finally:
            self.disconnect(client)
