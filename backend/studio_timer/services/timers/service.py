"""Glue between dispatch, the registry, the driver and the broadcaster.

Every mutation, whether from HTTP, a socket event or the countdown
driver, goes through ``TimerService.execute`` so that driver tasks and
observer pushes follow the same accepted-command path.
"""

import logging
from typing import Optional

from flask import current_app

from studio_timer.errors import InvalidCommandShape
from studio_timer.models import Phase, Room
from . import engine
from .broadcast import Broadcaster
from .clock import display_seconds
from .dispatch import DispatchRequest
from .driver import CountdownDriver
from .engine import Command
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class TimerService:
    def __init__(self, registry: RoomRegistry, labels, broadcaster: Broadcaster, push_display: bool = True):
        self.registry = registry
        self.labels = labels
        self.broadcaster = broadcaster
        self.push_display = push_display
        self.driver: Optional[CountdownDriver] = None
        # Last whole-second display pushed per running timer
        self._last_display = {}

    def attach_driver(self, driver: CountdownDriver) -> None:
        self.driver = driver

    def snapshot(self, room: Room) -> dict:
        return room.to_dict(self.registry.clock(), self.labels)

    def snapshot_for(self, code: str) -> dict:
        return self.snapshot(self.registry.get(code))

    def join(self, code: str) -> dict:
        return self.snapshot(self.registry.touch(code))

    def create_room(self) -> Room:
        return self.registry.create()

    def execute(self, code: str, command: Command, timer_id: Optional[int] = None) -> dict:
        """Apply one command and fan the result out. Returns the full snapshot."""
        return self._apply(code, command, timer_id)[1]

    def _apply(self, code: str, command: Command, timer_id: Optional[int]):
        room = self.registry.get(code)
        if timer_id is not None and not command.is_room_level and not room.has_timer(timer_id):
            raise InvalidCommandShape(f'Unknown timer: {timer_id}')

        fanned = {}

        def fan_out(result):
            fanned['snapshot'] = self._fan_out(result, command, timer_id)

        result = self.registry.apply_command(code, command, timer_id, on_applied=fan_out)
        return result, fanned['snapshot']

    def _fan_out(self, result, command: Command, timer_id: Optional[int]) -> dict:
        # Runs under the room lock: driver tasks and pushes follow version order
        code = result.room.code
        if self.driver is not None:
            self.driver.sync(code, result.transitions)
        for before, after in result.transitions:
            if after.phase is not Phase.RUNNING:
                self._last_display.pop((code, after.id), None)

        snapshot = self.snapshot(result.room)
        if result.changed:
            logger.info(f"[command] room={code} command={command.name} version={result.room.version}")
            self.broadcaster.publish(code, snapshot)
        elif command.name == engine.TICK and self.push_display and timer_id is not None:
            timer = result.room.timer(timer_id)
            if timer.phase is Phase.RUNNING:
                key = (code, timer_id)
                shown = display_seconds(timer, self.registry.clock())
                if self._last_display.get(key) != shown:
                    self._last_display[key] = shown
                    self.broadcaster.publish(code, snapshot)
        return snapshot

    def dispatch(self, request: DispatchRequest) -> dict:
        return self.execute(request.room_code, request.command, request.timer_id)

    def tick(self, code: str, timer_id: int) -> bool:
        """Driver step. Returns True while the timer is still running."""
        result, _ = self._apply(code, Command(engine.TICK), timer_id)
        return result.room.timer(timer_id).phase is Phase.RUNNING

    def evict_idle(self):
        evicted = self.registry.evict_idle()
        for code in evicted:
            if self.driver is not None:
                self.driver.cancel_room(code)
            self.broadcaster.close_room(code)
            for key in [k for k in self._last_display if k[0] == code]:
                self._last_display.pop(key, None)
        return evicted


def get_timer_service() -> TimerService:
    return current_app.extensions['studio_timer']
