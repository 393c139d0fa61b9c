from flask import Blueprint, Response, jsonify, request

from studio_timer.errors import InvalidCommandShape, RoomNotFound
from studio_timer.services.timers.dispatch import key_to_command, parse_command
from studio_timer.services.timers.service import get_timer_service


timers = Blueprint('timers', __name__)
labels = Blueprint('labels', __name__)


@timers.route('', methods=['GET'])
def poll_state():
    """Pull-mode snapshot. ``since`` lets pollers skip an unchanged room."""
    room_code = request.args.get('roomCode')
    service = get_timer_service()
    room = service.registry.touch(room_code)
    since = request.args.get('since', type=int)
    if since is not None and since == room.version:
        return jsonify({'unchanged': True, 'version': room.version})
    payload = service.snapshot(room)
    payload['success'] = True
    payload['labels'] = [label.to_dict() for label in service.labels.list()]
    return jsonify(payload)


@timers.route('/command', methods=['POST'])
def post_command():
    service = get_timer_service()
    dispatch = parse_command(request.get_json(silent=True), service.labels)
    return jsonify(service.dispatch(dispatch))


@timers.route('/key', methods=['POST'])
def post_key():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidCommandShape('Key payload must be a JSON object')
    room_code = data.get('roomCode')
    key = data.get('key')
    if not room_code or not key:
        raise InvalidCommandShape('roomCode and key are required')
    service = get_timer_service()
    command = key_to_command(key, data.get('code'))
    if command is None:
        # Unmapped keys are ignored like any other no-op input
        return jsonify(service.snapshot_for(room_code))
    return jsonify(service.execute(room_code, command))


@timers.route('/stream', methods=['GET'])
def stream():
    room_code = request.args.get('roomCode')
    if not room_code:
        return jsonify({'error': 'Room code required'}), 400
    service = get_timer_service()
    if not service.registry.exists(room_code):
        raise RoomNotFound(room_code)
    # Subscribe before taking the snapshot so no update falls in between
    sub = service.broadcaster.subscribe(room_code)
    try:
        initial = service.join(room_code)
    except RoomNotFound:
        service.broadcaster.unsubscribe(sub)
        raise
    return Response(
        service.broadcaster.stream(sub, initial),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache, no-transform',
            'X-Accel-Buffering': 'no',
        },
    )


@labels.route('', methods=['GET'])
def list_labels():
    service = get_timer_service()
    return jsonify({'success': True, 'labels': [label.to_dict() for label in service.labels.list()]})
