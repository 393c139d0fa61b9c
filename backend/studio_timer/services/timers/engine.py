"""Timer transition engine.

``apply(timer, command, now)`` returns the next Timer value for one
command. Every command is total: a command whose precondition does not
hold returns the timer unchanged, so a dropped or doubled click from a
control surface never raises.
"""

from dataclasses import dataclass, replace
from typing import Optional

from studio_timer.models import Direction, Phase, Room, Timer
from .clock import digits_only, finish, is_expired, parse_duration

MAX_INPUT_DIGITS = 6

# Timer-level commands
DIGIT = 'digit'
BACKSPACE = 'backspace'
SELECT_DIRECTION = 'select_direction'
COMMIT = 'commit'
PAUSE = 'pause'
TOGGLE = 'toggle'
RESET = 'reset'
SET_LABEL = 'set_label'
SET_INPUT = 'set_input'
TICK = 'tick'
FINISH = 'finish'
# Room-level commands
SELECT_TIMER = 'select_timer'
SELECT_NEXT = 'select_next'
SELECT_PREVIOUS = 'select_previous'
RESET_ALL = 'reset_all'

TIMER_COMMANDS = frozenset({
    DIGIT, BACKSPACE, SELECT_DIRECTION, COMMIT, PAUSE, TOGGLE,
    RESET, SET_LABEL, SET_INPUT, TICK, FINISH,
})
ROOM_COMMANDS = frozenset({SELECT_TIMER, SELECT_NEXT, SELECT_PREVIOUS, RESET_ALL})


@dataclass(frozen=True)
class Command:
    name: str
    value: object = None
    # Optional overrides carried by optimistic clients on commit
    input: Optional[str] = None
    direction: Optional[Direction] = None

    @property
    def is_room_level(self) -> bool:
        return self.name in ROOM_COMMANDS


def _enter_input(timer: Timer, raw_input: str = '') -> Timer:
    return replace(
        timer,
        phase=Phase.INPUT,
        raw_input=raw_input,
        pending_direction=None,
        direction=None,
        base_seconds=0,
        started_at=None,
        accumulated_seconds=0.0,
    )


def _start(timer: Timer, base_seconds: int, direction: Direction, now: float) -> Timer:
    return replace(
        timer,
        phase=Phase.RUNNING,
        raw_input=None,
        pending_direction=None,
        direction=direction,
        base_seconds=base_seconds,
        started_at=now,
        accumulated_seconds=0.0,
    )


def digit(timer: Timer, d: int) -> Timer:
    if timer.phase is Phase.INPUT:
        current = timer.raw_input or ''
        if len(current) >= MAX_INPUT_DIGITS:
            return timer
        return replace(timer, raw_input=current + str(d))
    return _enter_input(timer, str(d))


def backspace(timer: Timer) -> Timer:
    if timer.phase is not Phase.INPUT or not timer.raw_input:
        return timer
    return replace(timer, raw_input=timer.raw_input[:-1])


def select_direction(timer: Timer, direction: Direction) -> Timer:
    if timer.phase is not Phase.INPUT:
        return timer
    return replace(timer, pending_direction=direction)


def commit(timer: Timer, now: float, input_override=None, direction_override=None) -> Timer:
    if timer.phase is Phase.INPUT:
        raw = timer.raw_input if input_override is None else digits_only(input_override)[:MAX_INPUT_DIGITS]
        pending = direction_override or timer.pending_direction
        seconds = parse_duration(raw)
        if seconds == 0:
            # A zero-length countdown means nothing, so it always counts up
            direction = Direction.UP
        else:
            direction = pending or Direction.DOWN
        return _start(timer, seconds, direction, now)
    if timer.phase is Phase.PAUSED:
        return replace(timer, phase=Phase.RUNNING, started_at=now)
    if timer.phase is Phase.FINISHED:
        return _start(timer, 0, Direction.UP, now)
    return timer


def pause(timer: Timer, now: float) -> Timer:
    if timer.phase is not Phase.RUNNING:
        return timer
    if is_expired(timer, now):
        return finish(timer)
    segment = max(0.0, now - (timer.started_at or now))
    return replace(
        timer,
        phase=Phase.PAUSED,
        accumulated_seconds=timer.accumulated_seconds + segment,
    )


def toggle(timer: Timer, now: float) -> Timer:
    if timer.phase is Phase.RUNNING:
        return pause(timer, now)
    return commit(timer, now)


def reset(timer: Timer) -> Timer:
    return _enter_input(timer, '')


def set_label(timer: Timer, label_id) -> Timer:
    return replace(timer, label_id='' if label_id is None else str(label_id))


def set_input(timer: Timer, value) -> Timer:
    digits = digits_only(value)[:MAX_INPUT_DIGITS]
    if timer.phase is Phase.INPUT:
        return replace(timer, raw_input=digits)
    if timer.phase is Phase.FINISHED:
        return _enter_input(timer, digits)
    return timer


def tick(timer: Timer, now: float) -> Timer:
    if is_expired(timer, now):
        return finish(timer)
    return timer


def finish_timer(timer: Timer) -> Timer:
    if timer.phase is Phase.INPUT:
        return timer
    return finish(timer)


def apply(timer: Timer, command: Command, now: float) -> Timer:
    """Apply one timer-level command. Unknown names leave the timer as is."""
    name = command.name
    if name == DIGIT:
        return digit(timer, command.value)
    if name == BACKSPACE:
        return backspace(timer)
    if name == SELECT_DIRECTION:
        return select_direction(timer, command.value)
    if name == COMMIT:
        return commit(timer, now, command.input, command.direction)
    if name == PAUSE:
        return pause(timer, now)
    if name == TOGGLE:
        return toggle(timer, now)
    if name == RESET:
        return reset(timer)
    if name == SET_LABEL:
        return set_label(timer, command.value)
    if name == SET_INPUT:
        return set_input(timer, command.value)
    if name == TICK:
        return tick(timer, now)
    if name == FINISH:
        return finish_timer(timer)
    return timer


def apply_to_room(room: Room, timer_id: int, command: Command, now: float) -> Room:
    """Compute the next Room value. Housekeeping fields are left to the registry."""
    if command.name == SELECT_TIMER:
        if room.has_timer(command.value):
            return replace(room, selected_timer_id=command.value)
        return room
    if command.name in (SELECT_NEXT, SELECT_PREVIOUS):
        if not room.timers:
            return room
        step = 1 if command.name == SELECT_NEXT else -1
        return replace(room, selected_timer_id=(room.selected_timer_id + step) % len(room.timers))
    if command.name == RESET_ALL:
        return replace(room, timers=tuple(reset(t) for t in room.timers))
    if not room.has_timer(timer_id):
        return room
    current = room.timer(timer_id)
    updated = apply(current, command, now)
    if updated == current:
        return room
    return room.with_timer(updated)
