"""Wall-clock countdown computation.

Everything here is derived from the fields stored on a Timer and an
injected ``now``. Nothing is accumulated tick by tick, so a late or
skipped driver iteration never changes the value a timer reports.
"""

import math
from dataclasses import replace

from studio_timer.models import Direction, Phase, Timer

# str.isdigit also accepts superscripts and other scripts int() rejects
ASCII_DIGITS = frozenset('0123456789')


def digits_only(value) -> str:
    return ''.join(ch for ch in str(value or '') if ch in ASCII_DIGITS)


def parse_duration(digits) -> int:
    """Right-align up to six digits into HHMMSS and return total seconds.

    "5" -> 5, "130" -> 90, "12345" -> 01:23:45 -> 5025.
    """
    cleaned = digits_only(digits)[-6:]
    padded = cleaned.rjust(6, '0')
    hours, minutes, seconds = int(padded[0:2]), int(padded[2:4]), int(padded[4:6])
    return hours * 3600 + minutes * 60 + seconds


def format_input(digits) -> str:
    cleaned = digits_only(digits)[-6:]
    padded = cleaned.rjust(6, '0')
    return f"{padded[0:2]}:{padded[2:4]}:{padded[4:6]}"


def format_duration(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def elapsed_seconds(timer: Timer, now: float) -> int:
    """Whole seconds counted across every run segment, paused time excluded."""
    if timer.phase is Phase.RUNNING and timer.started_at is not None:
        segment = max(0.0, now - timer.started_at)
        return int(math.floor(timer.accumulated_seconds + segment))
    if timer.phase is Phase.PAUSED:
        return int(math.floor(timer.accumulated_seconds))
    return 0


def signed_display(timer: Timer, now: float) -> int:
    total = elapsed_seconds(timer, now)
    if timer.direction is Direction.UP:
        return timer.base_seconds + total
    return timer.base_seconds - total


def display_seconds(timer: Timer, now: float) -> int:
    if timer.phase not in (Phase.RUNNING, Phase.PAUSED):
        return 0
    return max(0, signed_display(timer, now))


def preview_seconds(timer: Timer) -> int:
    """What an input-mode timer would start from if committed now."""
    if timer.phase is not Phase.INPUT:
        return 0
    return parse_duration(timer.raw_input)


def is_expired(timer: Timer, now: float) -> bool:
    return (
        timer.phase is Phase.RUNNING
        and timer.direction is Direction.DOWN
        and signed_display(timer, now) <= 0
    )


def finish(timer: Timer) -> Timer:
    """Move a timer to Finished at exactly zero. Label is kept; repeat calls are no-ops."""
    finished = replace(
        timer,
        phase=Phase.FINISHED,
        raw_input=None,
        pending_direction=None,
        direction=None,
        base_seconds=0,
        started_at=None,
        accumulated_seconds=0.0,
    )
    if finished == timer:
        return timer
    return finished
