from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from typing import Dict, Set
import time

from studio_timer import socketio
from studio_timer.errors import StudioTimerError, RoomNotFound
from studio_timer.services.timers.broadcast import SOCKET_NAMESPACE, socket_room
from studio_timer.services.timers.dispatch import parse_command
from studio_timer.services.timers.service import get_timer_service


# sid -> room codes the socket observes
_sid_to_rooms: Dict[str, Set[str]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def handle_connect():
    emit('connected', {'message': 'Connected to /ws', 'timestamp': time.time()})


def handle_disconnect(*args):
    codes = _sid_to_rooms.pop(_get_sid(), set())
    for code in codes:
        current_app.logger.info(f"[ws-disconnect] room={code}")


def handle_join_room(data):
    room_code = ((data or {}).get('roomCode') or '').upper()
    if not room_code:
        emit('error', {'message': 'roomCode is required'})
        return
    service = get_timer_service()
    try:
        snapshot = service.join(room_code)
    except RoomNotFound:
        emit('error', {'message': 'Room not found', 'roomCode': room_code})
        return
    join_room(socket_room(room_code))
    _sid_to_rooms.setdefault(_get_sid(), set()).add(room_code)
    emit('joined', {'room': socket_room(room_code)})
    # A new observer always starts from the full snapshot
    emit('state', snapshot)


def handle_leave_room(data):
    room_code = ((data or {}).get('roomCode') or '').upper()
    if not room_code:
        emit('error', {'message': 'roomCode is required'})
        return
    leave_room(socket_room(room_code))
    _sid_to_rooms.get(_get_sid(), set()).discard(room_code)
    emit('left', {'room': socket_room(room_code)})


def handle_command(data):
    """Apply a command sent over the socket; the ack carries the snapshot."""
    service = get_timer_service()
    try:
        snapshot = service.dispatch(parse_command(data, service.labels))
    except StudioTimerError as exc:
        emit('error', {'message': exc.message, 'status': exc.status_code})
        return {'error': exc.message, 'status': exc.status_code}
    return snapshot


def handle_ping(data):
    payload = dict(data or {})
    payload['timestamp'] = time.time()
    emit('pong', payload)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [SOCKET_NAMESPACE]
    if testing:
        namespaces.append('/')
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_room', handle_join_room, namespace=namespace)
        socketio.on_event('leave_room', handle_leave_room, namespace=namespace)
        socketio.on_event('command', handle_command, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
