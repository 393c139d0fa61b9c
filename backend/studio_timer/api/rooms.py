from flask import Blueprint, current_app, jsonify, request

from studio_timer.config import parse_default_rooms
from studio_timer.errors import RoomNotFound
from studio_timer.services.timers.service import get_timer_service


rooms = Blueprint('rooms', __name__)


@rooms.route('', methods=['POST'])
def room_action():
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    service = get_timer_service()

    if action == 'create':
        room = service.create_room()
        return jsonify({'roomCode': room.code}), 201

    if action == 'join':
        room_code = data.get('roomCode')
        if not room_code:
            return jsonify({'success': False, 'error': 'roomCode is required'}), 400
        try:
            state = service.join(room_code)
        except RoomNotFound:
            return jsonify({'success': False, 'error': 'Room not found'}), 404
        current_app.logger.info(f"[room-join] code={state['code']} version={state['version']}")
        return jsonify({'success': True, 'state': state})

    return jsonify({'error': 'Invalid action'}), 400


@rooms.route('', methods=['GET'])
def get_room():
    room_code = request.args.get('roomCode')
    if not room_code:
        raise RoomNotFound('')
    return jsonify(get_timer_service().join(room_code))


@rooms.route('/defaults', methods=['GET'])
def default_rooms():
    pairs = parse_default_rooms(current_app.config.get('DEFAULT_ROOMS', ''))
    return jsonify([{'code': code, 'name': name} for code, name in pairs])
