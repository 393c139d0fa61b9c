from flask import Blueprint, jsonify

from studio_timer.services.timers.service import get_timer_service

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Studio timer server is running'})

@main.route('/health')
def health():
    service = get_timer_service()
    return jsonify({'status': 'ok', 'rooms': len(service.registry.codes())})
