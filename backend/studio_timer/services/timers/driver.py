"""Periodic driver for running timers.

Each running timer gets exactly one background task that wakes every
``interval`` seconds and asks the service to re-derive the timer from its
stored fields. The cadence only decides how quickly a finish or a new
display second reaches observers; the value itself never depends on how
many iterations ran.

Tasks are keyed by (room code, timer id) and carry a generation number.
Cancelling bumps the generation away, so a sleeping task notices on its
next wake-up and exits without touching the room.
"""

import itertools
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from studio_timer.errors import RoomNotFound
from studio_timer.models import Phase

logger = logging.getLogger(__name__)

Key = Tuple[str, int]


class CountdownDriver:
    def __init__(
        self,
        step: Callable[[str, int], bool],
        spawn: Optional[Callable] = None,
        sleep: Callable[[float], None] = time.sleep,
        interval: float = 0.25,
    ):
        self.step = step
        self.spawn = spawn
        self.sleep = sleep
        self.interval = interval
        self._generations: Dict[Key, int] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def is_active(self, code: str, timer_id: int) -> bool:
        with self._lock:
            return (code.upper(), timer_id) in self._generations

    def active(self):
        with self._lock:
            return sorted(self._generations)

    def start(self, code: str, timer_id: int) -> int:
        """Replace any task for this timer with a fresh one."""
        key = (code.upper(), timer_id)
        with self._lock:
            generation = next(self._counter)
            self._generations[key] = generation
        logger.info(f"[driver-start] room={key[0]} timer={timer_id} interval={self.interval}s")
        if self.spawn is not None:
            self.spawn(self._worker, key, generation)
        return generation

    def cancel(self, code: str, timer_id: int, generation: Optional[int] = None) -> bool:
        key = (code.upper(), timer_id)
        with self._lock:
            if generation is not None and self._generations.get(key) != generation:
                return False
            cancelled = self._generations.pop(key, None) is not None
        if cancelled:
            logger.info(f"[driver-cancel] room={key[0]} timer={timer_id}")
        return cancelled

    def cancel_room(self, code: str) -> None:
        code = code.upper()
        with self._lock:
            keys = [k for k in self._generations if k[0] == code]
        for key in keys:
            self.cancel(*key)

    def sync(self, code: str, transitions) -> None:
        """Start or cancel tasks for the (before, after) timer pairs of a command."""
        for before, after in transitions:
            was_running = before.phase is Phase.RUNNING
            now_running = after.phase is Phase.RUNNING
            if was_running and not now_running:
                self.cancel(code, after.id)
            elif now_running and not was_running:
                self.start(code, after.id)

    def run_once(self, code: str, timer_id: int, generation: Optional[int] = None) -> bool:
        """One driver iteration. Returns False once the timer left Running."""
        try:
            keep_going = self.step(code.upper(), timer_id)
        except RoomNotFound:
            keep_going = False
        except Exception:
            logger.exception(f"[driver-error] room={code.upper()} timer={timer_id} generation={generation}")
            keep_going = False
        if not keep_going:
            self.cancel(code, timer_id, generation)
        return keep_going

    def _current(self, key: Key, generation: int) -> bool:
        with self._lock:
            return self._generations.get(key) == generation

    def _worker(self, key: Key, generation: int) -> None:
        code, timer_id = key
        while self._current(key, generation):
            self.sleep(self.interval)
            if not self._current(key, generation):
                break
            if not self.run_once(code, timer_id, generation):
                break
        logger.debug(f"[driver-exit] room={code} timer={timer_id} generation={generation}")
