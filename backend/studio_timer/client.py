"""Observer-side helpers for displays and control surfaces.

- ``local_display_seconds`` re-derives a timer's display from the last
  snapshot and the local clock, so a display animates between syncs
  without keeping its own decrementing counter.
- ``PredictionOverlay`` holds short-lived optimistic values for fields a
  local user just touched, layered over the authoritative snapshot.
- ``PollingObserver`` is a pull-mode observer with version gating and
  capped exponential backoff.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from studio_timer.errors import RoomNotFound, TransportFailure

logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 0.5
BACKOFF_CAP_SECONDS = 30.0
PREDICTION_WINDOW_SECONDS = 1.0


def local_display_seconds(timer: Dict[str, Any], now: float) -> int:
    """Display value for one serialized timer at local time ``now``."""
    phase = timer.get('phase')
    if phase == 'input':
        return int(timer.get('timeLeft') or 0)
    if phase not in ('running', 'paused'):
        return 0
    accumulated = float(timer.get('accumulatedSeconds') or 0.0)
    if phase == 'running' and timer.get('startedAt') is not None:
        accumulated += max(0.0, now - float(timer['startedAt']))
    total = int(math.floor(accumulated))
    base = int(timer.get('baseSeconds') or 0)
    if timer.get('direction') == 'up':
        return base + total
    return max(0, base - total)


def backoff_delay(failures: int, base: float = BACKOFF_BASE_SECONDS, cap: float = BACKOFF_CAP_SECONDS) -> float:
    if failures <= 0:
        return 0.0
    return min(cap, base * (2 ** (failures - 1)))


class PredictionOverlay:
    """Optimistic per-field values that expire after ``window`` seconds."""

    def __init__(self, window: float = PREDICTION_WINDOW_SECONDS, clock: Callable[[], float] = time.time):
        self.window = window
        self.clock = clock
        self._entries: Dict[Tuple[int, str], Tuple[Any, float]] = {}

    def touch(self, timer_id: int, field_name: str, value: Any) -> None:
        self._entries[(timer_id, field_name)] = (value, self.clock())

    def active(self) -> Dict[Tuple[int, str], Any]:
        now = self.clock()
        expired = [k for k, (_, at) in self._entries.items() if now - at >= self.window]
        for key in expired:
            del self._entries[key]
        return {k: v for k, (v, _) in self._entries.items()}

    def apply(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``snapshot`` with unexpired predictions laid over it."""
        overrides = self.active()
        if not overrides:
            return snapshot
        timers = []
        for timer in snapshot.get('timers', []):
            patched = dict(timer)
            for (timer_id, field_name), value in overrides.items():
                if timer_id == timer.get('id'):
                    patched[field_name] = value
            timers.append(patched)
        merged = dict(snapshot)
        merged['timers'] = timers
        return merged


@dataclass
class PollingObserver:
    """Pull-mode observer of one room.

    ``poll_once`` applies a snapshot only when its version advanced and
    tracks consecutive failures; ``next_delay`` is what the caller should
    sleep before polling again.
    """

    base_url: str
    room_code: str
    interval: float = 0.5
    client: Optional[httpx.Client] = None
    snapshot: Optional[Dict[str, Any]] = None
    failures: int = 0
    on_snapshot: Optional[Callable[[Dict[str, Any]], None]] = None
    overlay: PredictionOverlay = field(default_factory=PredictionOverlay)

    def __post_init__(self):
        if self.client is None:
            self.client = httpx.Client(base_url=self.base_url, timeout=httpx.Timeout(5.0))

    @property
    def version(self) -> Optional[int]:
        return self.snapshot.get('version') if self.snapshot else None

    def next_delay(self) -> float:
        if self.failures:
            return max(self.interval, backoff_delay(self.failures))
        return self.interval

    def _adopt(self, snapshot: Dict[str, Any]) -> bool:
        incoming = snapshot.get('version')
        if self.snapshot is not None and incoming is not None and incoming <= self.version:
            return False
        self.snapshot = snapshot
        if self.on_snapshot is not None:
            self.on_snapshot(self.view())
        return True

    def view(self) -> Optional[Dict[str, Any]]:
        """Authoritative snapshot with local predictions applied."""
        if self.snapshot is None:
            return None
        return self.overlay.apply(self.snapshot)

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            self.failures += 1
            logger.warning(f"[poll-fail] room={self.room_code} failures={self.failures} error={exc}")
            raise TransportFailure(str(exc)) from exc
        if response.status_code >= 500:
            self.failures += 1
            logger.warning(f"[poll-fail] room={self.room_code} failures={self.failures} status={response.status_code}")
            raise TransportFailure(f'HTTP {response.status_code}')
        self.failures = 0
        if response.status_code == 404:
            # The room is gone, typically evicted after idling
            raise RoomNotFound(self.room_code)
        response.raise_for_status()
        return response.json()

    def poll_once(self) -> bool:
        """Fetch the room once. Returns True when a newer snapshot was applied."""
        params = {'roomCode': self.room_code}
        if self.version is not None:
            params['since'] = self.version
        payload = self._request('GET', '/api/timers', params=params)
        if payload.get('unchanged'):
            return False
        return self._adopt(payload)

    def send_command(self, command: str, **fields) -> Dict[str, Any]:
        body = {'command': command, 'roomCode': self.room_code}
        body.update(fields)
        snapshot = self._request('POST', '/api/timers/command', json=body)
        self._adopt(snapshot)
        return snapshot

    def run(self, stop: Callable[[], bool], sleep: Callable[[float], None] = time.sleep) -> None:
        while not stop():
            try:
                self.poll_once()
            except TransportFailure:
                pass  # failures counter drives the backoff below
            except RoomNotFound:
                logger.info(f"[poll-stop] room={self.room_code} room no longer exists")
                return
            sleep(self.next_delay())
