"""Fan-out of room snapshots to push observers.

Two push channels share one entry point:

- Socket.IO clients joined to ``room:<CODE>`` on the ``/ws`` namespace.
- Server-sent event subscribers, each a bounded queue drained by a
  streaming response.

Publishing never blocks. Delivery is at most once per event; a
subscriber that missed an update recovers from the full snapshot sent on
its next (re)subscribe.
"""

import json
import logging
import queue
import threading
import time
from typing import Callable, Dict, Iterator, Optional, Set

logger = logging.getLogger(__name__)

SOCKET_NAMESPACE = '/ws'
_CLOSE = object()


def socket_room(code: str) -> str:
    return f"room:{code.upper()}"


def sse_frame(payload: dict) -> str:
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


class Subscriber:
    def __init__(self, code: str, maxsize: int, now: float):
        self.code = code
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.last_seen = now

    def offer(self, message) -> bool:
        try:
            self.queue.put_nowait(message)
        except queue.Full:
            return False
        return True

    def close(self) -> None:
        # Drop whatever is pending so the close marker always fits
        while True:
            try:
                self.queue.get_nowait()
            except queue.Empty:
                break
        self.queue.put_nowait(_CLOSE)


class Broadcaster:
    def __init__(
        self,
        socketio=None,
        queue_size: int = 64,
        subscriber_timeout: float = 60,
        heartbeat_interval: float = 30,
        clock: Callable[[], float] = time.time,
    ):
        self.socketio = socketio
        self.queue_size = queue_size
        self.subscriber_timeout = subscriber_timeout
        self.heartbeat_interval = heartbeat_interval
        self.clock = clock
        self._subscribers: Dict[str, Set[Subscriber]] = {}
        self._lock = threading.Lock()

    # ---- server-sent events ----

    def subscribe(self, code: str) -> Subscriber:
        sub = Subscriber(code.upper(), self.queue_size, self.clock())
        with self._lock:
            self._subscribers.setdefault(sub.code, set()).add(sub)
            total = len(self._subscribers[sub.code])
        logger.info(f"[sse-open] room={sub.code} subscribers={total}")
        return sub

    def unsubscribe(self, sub: Subscriber) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.code)
            if subs is None:
                return
            subs.discard(sub)
            remaining = len(subs)
            if not subs:
                del self._subscribers[sub.code]
        logger.info(f"[sse-close] room={sub.code} subscribers={remaining}")

    def subscriber_count(self, code: str) -> int:
        with self._lock:
            return len(self._subscribers.get(code.upper(), ()))

    def close_room(self, code: str) -> None:
        with self._lock:
            subs = self._subscribers.pop(code.upper(), set())
        for sub in subs:
            sub.close()

    def stream(self, sub: Subscriber, initial_snapshot: Optional[dict] = None) -> Iterator[str]:
        """Yield SSE frames for one subscriber until it is closed or pruned."""
        try:
            yield sse_frame({'type': 'connected', 'timestamp': self.clock()})
            if initial_snapshot is not None:
                yield sse_frame(dict(initial_snapshot, type='state'))
            while True:
                sub.last_seen = self.clock()
                try:
                    message = sub.queue.get(timeout=self.heartbeat_interval)
                except queue.Empty:
                    yield sse_frame({'type': 'heartbeat', 'timestamp': self.clock()})
                    continue
                if message is _CLOSE:
                    return
                yield message
        finally:
            self.unsubscribe(sub)

    # ---- publishing ----

    def publish(self, code: str, snapshot: dict, event: str = 'update') -> int:
        """Push a full snapshot to every observer of the room.

        Returns the number of stream subscribers that accepted it.
        """
        code = code.upper()
        if self.socketio is not None:
            self.socketio.emit(event, snapshot, to=socket_room(code), namespace=SOCKET_NAMESPACE)

        now = self.clock()
        message = sse_frame(dict(snapshot, type=event, timestamp=now))
        with self._lock:
            subs = list(self._subscribers.get(code, ()))
        dead = []
        delivered = 0
        for sub in subs:
            if now - sub.last_seen > self.subscriber_timeout or not sub.offer(message):
                dead.append(sub)
                continue
            delivered += 1
        for sub in dead:
            logger.info(f"[sse-prune] room={code} idle={now - sub.last_seen:.1f}s")
            self.unsubscribe(sub)
            sub.close()
        logger.debug(f"[broadcast] room={code} event={event} version={snapshot.get('version')} subscribers={delivered}")
        return delivered
