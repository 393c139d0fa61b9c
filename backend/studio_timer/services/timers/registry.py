"""Room registry: the single in-memory owner of every room's state.

One instance is built per application by ``create_app`` and handed to
request handlers through ``app.extensions``. Each room has its own lock
so commands for a room apply strictly one after another, while rooms
never wait on each other.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from studio_timer.errors import RoomNotFound
from studio_timer.models import Room, Timer, generate_room_code
from .engine import Command, apply_to_room

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    room: Room
    changed: bool
    # Per-timer (before, after) pairs for every timer the command touched
    transitions: tuple = ()


class RoomRegistry:
    def __init__(
        self,
        timers_per_room: int = 2,
        code_length: int = 6,
        idle_ttl: float = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.timers_per_room = timers_per_room
        self.code_length = code_length
        self.idle_ttl = idle_ttl
        self.clock = clock
        self._rooms: Dict[str, Room] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._pinned = set()
        self._lock = threading.Lock()

    # ---- lifecycle ----

    def seed(self, code: str, name: str = '') -> Room:
        """Create a well-known room that idle eviction never removes."""
        code = code.upper()
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                room = Room.fresh(code, self.timers_per_room, self.clock(), name=name)
                self._rooms[code] = room
                self._locks[code] = threading.Lock()
            self._pinned.add(code)
        logger.info(f"[room-seed] code={code} name={name!r}")
        return room

    def create(self) -> Room:
        with self._lock:
            code = generate_room_code(self.code_length, exists=lambda c: c in self._rooms)
            room = Room.fresh(code, self.timers_per_room, self.clock())
            self._rooms[code] = room
            self._locks[code] = threading.Lock()
        logger.info(f"[room-create] code={code} timers={self.timers_per_room}")
        return room

    def get(self, code) -> Room:
        key = (code or '').upper()
        room = self._rooms.get(key)
        if room is None:
            raise RoomNotFound(key)
        return room

    def exists(self, code) -> bool:
        return (code or '').upper() in self._rooms

    def touch(self, code) -> Room:
        key = (code or '').upper()
        with self._room_lock(key):
            room = self.get(key)
            room = replace(room, last_activity_at=self.clock())
            self._rooms[key] = room
        return room

    def codes(self) -> List[str]:
        return sorted(self._rooms)

    def rooms(self) -> List[Room]:
        return [self._rooms[c] for c in self.codes()]

    def evict_idle(self, now: Optional[float] = None) -> List[str]:
        if not self.idle_ttl:
            return []
        now = self.clock() if now is None else now
        evicted = []
        with self._lock:
            for code, room in list(self._rooms.items()):
                if code in self._pinned:
                    continue
                if now - room.last_activity_at < self.idle_ttl:
                    continue
                lock = self._locks[code]
                # A room busy applying a command is not idle
                if not lock.acquire(blocking=False):
                    continue
                try:
                    del self._rooms[code]
                    del self._locks[code]
                finally:
                    lock.release()
                evicted.append(code)
        for code in evicted:
            logger.info(f"[room-evict] code={code} idle_ttl={self.idle_ttl}s")
        return evicted

    # ---- mutation ----

    def _room_lock(self, code: str) -> threading.Lock:
        lock = self._locks.get(code)
        if lock is None:
            raise RoomNotFound(code)
        return lock

    def apply_command(
        self,
        code,
        command: Command,
        timer_id: Optional[int] = None,
        on_applied: Optional[Callable[[CommandResult], None]] = None,
    ) -> CommandResult:
        """Apply one command to one room.

        ``timer_id`` of None targets the room's selected timer, resolved
        under the room lock so it cannot race a concurrent selectTimer.
        The complete next Room is computed before it is stored; the
        version only moves when timers or selection actually changed.
        ``on_applied`` is called with the result before the lock is
        released, so its side effects happen in version order.
        """
        key = (code or '').upper()
        with self._room_lock(key):
            current = self.get(key)
            target = current.selected_timer_id if timer_id is None else timer_id
            now = self.clock()
            proposed = apply_to_room(current, target, command, now)
            changed = not proposed.same_state(current)
            if changed:
                stored = replace(proposed, version=current.version + 1, last_activity_at=now)
            else:
                stored = replace(current, last_activity_at=now)
            self._rooms[key] = stored

            transitions = tuple(
                (before, after)
                for before, after in zip(current.timers, stored.timers)
                if before != after
            )
            result = CommandResult(room=stored, changed=changed, transitions=transitions)
            if changed:
                logger.debug(f"[command] room={key} timer={target} command={command.name} version={stored.version}")
            else:
                logger.debug(f"[command-noop] room={key} timer={target} command={command.name}")
            if on_applied is not None:
                on_applied(result)
        return result

    def timer(self, code, timer_id: int) -> Timer:
        return self.get(code).timer(timer_id)
