from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple
import random
import string


class Phase(str, Enum):
    INPUT = 'input'
    RUNNING = 'running'
    PAUSED = 'paused'
    FINISHED = 'finished'


class Direction(str, Enum):
    UP = 'up'
    DOWN = 'down'


# Legacy status vocabulary seen by older displays
_LEGACY_STATUS = {
    Phase.INPUT: 'input',
    Phase.RUNNING: 'playing',
    Phase.PAUSED: 'paused',
    Phase.FINISHED: 'finished',
}


@dataclass(frozen=True)
class Timer:
    id: int
    phase: Phase = Phase.INPUT
    raw_input: Optional[str] = ''
    pending_direction: Optional[Direction] = None
    direction: Optional[Direction] = None
    base_seconds: int = 0
    started_at: Optional[float] = None
    accumulated_seconds: float = 0.0
    label_id: str = ''

    @property
    def is_running(self) -> bool:
        return self.phase is Phase.RUNNING

    @property
    def is_input_mode(self) -> bool:
        return self.phase is Phase.INPUT

    @property
    def is_counting_up(self) -> bool:
        return self.direction is Direction.UP

    def to_dict(self, now: float, label_text: Optional[str] = None) -> dict:
        from studio_timer.services.timers.clock import display_seconds, preview_seconds

        if self.phase is Phase.INPUT:
            time_left = preview_seconds(self)
            selected_mode = self.pending_direction
        else:
            time_left = display_seconds(self, now)
            selected_mode = self.direction
        return {
            'id': self.id,
            'phase': self.phase.value,
            'status': _LEGACY_STATUS[self.phase],
            'input': self.raw_input or '',
            'timeLeft': time_left,
            'baseSeconds': self.base_seconds,
            'accumulatedSeconds': self.accumulated_seconds,
            'startedAt': self.started_at,
            'isRunning': self.is_running,
            'isInputMode': self.is_input_mode,
            'isCountingUp': self.is_counting_up,
            'selectedMode': selected_mode.value if selected_mode else None,
            'direction': self.direction.value if self.direction else None,
            'labelId': self.label_id,
            'label': label_text if label_text is not None else '',
        }


def generate_room_code(length=6, exists=None):
    """Generate a room code not already taken according to ``exists``."""
    alphabet = string.ascii_uppercase + string.digits
    while True:
        code = ''.join(random.choices(alphabet, k=length))
        if exists is None or not exists(code):
            return code


@dataclass(frozen=True)
class Room:
    code: str
    timers: Tuple[Timer, ...]
    selected_timer_id: int = 0
    created_at: float = 0.0
    last_activity_at: float = 0.0
    version: int = 0
    name: str = ''

    @classmethod
    def fresh(cls, code: str, timer_count: int, now: float, name: str = '') -> 'Room':
        return cls(
            code=code,
            timers=tuple(Timer(id=i) for i in range(timer_count)),
            selected_timer_id=0,
            created_at=now,
            last_activity_at=now,
            version=0,
            name=name,
        )

    def timer(self, timer_id: int) -> Timer:
        return self.timers[timer_id]

    def has_timer(self, timer_id) -> bool:
        return isinstance(timer_id, int) and not isinstance(timer_id, bool) and 0 <= timer_id < len(self.timers)

    def with_timer(self, updated: Timer) -> 'Room':
        timers = tuple(updated if t.id == updated.id else t for t in self.timers)
        return replace(self, timers=timers)

    def same_state(self, other: 'Room') -> bool:
        """True when timers and selection match, ignoring housekeeping fields."""
        return self.timers == other.timers and self.selected_timer_id == other.selected_timer_id

    def to_dict(self, now: float, labels=None) -> dict:
        timers = []
        for t in self.timers:
            label_text = labels.resolve(t.label_id) if labels is not None else None
            timers.append(t.to_dict(now, label_text))
        selected = timers[self.selected_timer_id] if timers else None
        return {
            'code': self.code,
            'name': self.name,
            'timers': timers,
            'selectedTimer': self.selected_timer_id,
            'selectedTimerId': self.selected_timer_id,
            'selectedTimerStatus': selected['status'] if selected else 'input',
            'version': self.version,
            'createdAt': self.created_at,
            'lastActivity': self.last_activity_at,
            'serverTime': now,
        }


@dataclass
class Label:
    id: str
    text: str = ''
    order: int = 0

    def to_dict(self):
        return {
            'id': self.id,
            'text': self.text,
            'order': self.order,
        }
