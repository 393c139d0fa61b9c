"""Command dispatch: external control inputs to canonical commands.

HTTP posts from control surfaces and macro pads, Socket.IO ``command``
events and keyboard keys all come through here. Shape problems are
raised as ``InvalidCommandShape`` at this boundary; anything that passes
is handed to the registry as exactly one Command for at most one timer.
"""

import re
from dataclasses import dataclass
from typing import Optional

from studio_timer.errors import InvalidCommandShape
from studio_timer.models import Direction
from . import engine
from .engine import Command

# Wire name -> canonical command name. Legacy names come first.
COMMAND_ALIASES = {
    'number': engine.DIGIT,
    'digit': engine.DIGIT,
    'backspace': engine.BACKSPACE,
    'modeUp': engine.SELECT_DIRECTION,
    'modeDown': engine.SELECT_DIRECTION,
    'selectMode': engine.SELECT_DIRECTION,
    'selectDirection': engine.SELECT_DIRECTION,
    'enter': engine.COMMIT,
    'start': engine.COMMIT,
    'commit': engine.COMMIT,
    'pause': engine.PAUSE,
    'pauseResume': engine.TOGGLE,
    'toggle': engine.TOGGLE,
    'delete': engine.RESET,
    'reset': engine.RESET,
    'resetBoth': engine.RESET_ALL,
    'resetAll': engine.RESET_ALL,
    'timerFinished': engine.FINISH,
    'finish': engine.FINISH,
    'setLabel': engine.SET_LABEL,
    'updateLabel': engine.SET_LABEL,
    'setTime': engine.SET_INPUT,
    'syncInput': engine.SET_INPUT,
    'selectTimer': engine.SELECT_TIMER,
    'selectNext': engine.SELECT_NEXT,
    'selectPrevious': engine.SELECT_PREVIOUS,
    'tick': engine.TICK,
}

KEY_DIGITS = frozenset('0123456789')
INTEGER_RE = re.compile(r'-?[0-9]+')


@dataclass(frozen=True)
class DispatchRequest:
    room_code: str
    command: Command
    timer_id: Optional[int] = None


def _as_int(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise InvalidCommandShape(f'{field_name} must be an integer')
    if isinstance(value, int):
        return value
    if isinstance(value, str) and INTEGER_RE.fullmatch(value.strip()):
        return int(value.strip())
    raise InvalidCommandShape(f'{field_name} must be an integer')


def parse_direction(value) -> Optional[Direction]:
    if value is None or value == '':
        return None
    try:
        return Direction(str(value).lower())
    except ValueError:
        raise InvalidCommandShape(f'Unknown direction: {value}')


def resolve_label(payload: dict, labels) -> str:
    """Turn labelIndex / value into a label id.

    ``labelIndex`` and integer values are 1-based positions in display
    order (macro pad buttons); a string value is a label id and ``""``
    clears the label.
    """
    if payload.get('labelIndex') is not None:
        index = _as_int(payload['labelIndex'], 'labelIndex')
        label = labels.by_index(index)
        if label is None:
            raise InvalidCommandShape(f'Label index {index} not found')
        return label.id
    if 'value' not in payload or payload['value'] is None:
        raise InvalidCommandShape('setLabel requires labelIndex or value')
    value = payload['value']
    if isinstance(value, int) and not isinstance(value, bool):
        label = labels.by_index(value)
        if label is None:
            raise InvalidCommandShape(f'Label index {value} not found')
        return label.id
    value = str(value)
    if value == '' or labels.get(value) is not None:
        return value
    raise InvalidCommandShape(f'Label {value} not found')


def build_command(name: str, payload: dict, labels=None) -> Command:
    """Build a canonical Command from a wire command name and its payload."""
    canonical = COMMAND_ALIASES.get(name)
    if canonical is None:
        raise InvalidCommandShape(f'Unknown command: {name}')

    if canonical == engine.DIGIT:
        value = _as_int(payload.get('value'), 'value')
        if not 0 <= value <= 9:
            raise InvalidCommandShape('value must be a single digit')
        return Command(canonical, value)

    if canonical == engine.SELECT_DIRECTION:
        if name == 'modeUp':
            return Command(canonical, Direction.UP)
        if name == 'modeDown':
            return Command(canonical, Direction.DOWN)
        direction = parse_direction(payload.get('value'))
        if direction is None:
            raise InvalidCommandShape('value must be "up" or "down"')
        return Command(canonical, direction)

    if canonical == engine.COMMIT:
        raw_input = payload.get('input')
        if raw_input is not None and not isinstance(raw_input, (str, int)):
            raise InvalidCommandShape('input must be a digit string')
        return Command(
            canonical,
            input=None if raw_input is None else str(raw_input),
            direction=parse_direction(payload.get('selectedMode')),
        )

    if canonical == engine.SET_INPUT:
        value = payload.get('input', payload.get('value'))
        if value is None or not isinstance(value, (str, int)) or isinstance(value, bool):
            raise InvalidCommandShape(f'{name} requires a digit string')
        return Command(canonical, str(value))

    if canonical == engine.SET_LABEL:
        if labels is None:
            raise InvalidCommandShape('Labels are not available')
        return Command(canonical, resolve_label(payload, labels))

    if canonical == engine.SELECT_TIMER:
        # Macro pads send the timer to select as timerId
        raw = payload.get('value', payload.get('timerId'))
        if raw is None:
            raise InvalidCommandShape('selectTimer requires value')
        return Command(canonical, _as_int(raw, 'value'))

    return Command(canonical)


def parse_command(payload, labels=None) -> DispatchRequest:
    if not isinstance(payload, dict):
        raise InvalidCommandShape('Command payload must be a JSON object')
    name = payload.get('command') or payload.get('action')
    if not name or not isinstance(name, str):
        raise InvalidCommandShape('command is required')
    room_code = payload.get('roomCode')
    if not room_code or not isinstance(room_code, str):
        raise InvalidCommandShape('roomCode is required')

    command = build_command(name, payload, labels)
    timer_id = None
    if not command.is_room_level and payload.get('timerId') is not None:
        timer_id = _as_int(payload['timerId'], 'timerId')
    return DispatchRequest(room_code=room_code.upper(), command=command, timer_id=timer_id)


def key_to_command(key: str, code: Optional[str] = None) -> Optional[Command]:
    """Map a keyboard key (DOM ``key``/``code`` names) to a command, or None."""
    if key in KEY_DIGITS:
        return Command(engine.DIGIT, int(key))
    if key == '+' or code == 'NumpadAdd':
        return Command(engine.SELECT_DIRECTION, Direction.UP)
    if key == '-' or code == 'NumpadSubtract':
        return Command(engine.SELECT_DIRECTION, Direction.DOWN)
    if key == 'Backspace':
        return Command(engine.BACKSPACE)
    if key == 'Delete':
        return Command(engine.RESET)
    if key == 'Enter' or code == 'NumpadEnter':
        return Command(engine.TOGGLE)
    if key == 'ArrowUp':
        return Command(engine.SELECT_PREVIOUS)
    if key == 'ArrowDown':
        return Command(engine.SELECT_NEXT)
    return None
