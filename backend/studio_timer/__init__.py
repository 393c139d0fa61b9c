import logging

import click
from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from studio_timer.config import Config, parse_default_rooms

socketio = SocketIO(async_mode=None)


def _allowed_origins(value):
    if not value or value.strip() == '*':
        return '*'
    return [o.strip() for o in value.split(',') if o.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    level = flask_app.config.get('LOG_LEVEL', 'INFO')
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    flask_app.logger.setLevel(level)

    allowed_origins = _allowed_origins(flask_app.config.get('CORS_ORIGINS', '*'))
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(
        flask_app,
        cors_allowed_origins=allowed_origins,
        ping_interval=flask_app.config.get('SOCKETIO_PING_INTERVAL', 25),
        ping_timeout=flask_app.config.get('SOCKETIO_PING_TIMEOUT', 60),
    )

    from studio_timer.services.labels import LabelStore
    from studio_timer.services.timers.broadcast import Broadcaster
    from studio_timer.services.timers.driver import CountdownDriver
    from studio_timer.services.timers.registry import RoomRegistry
    from studio_timer.services.timers.service import TimerService

    registry = RoomRegistry(
        timers_per_room=flask_app.config.get('TIMERS_PER_ROOM', 2),
        code_length=flask_app.config.get('ROOM_CODE_LENGTH', 6),
        idle_ttl=flask_app.config.get('ROOM_IDLE_TTL_SEC', 0),
    )
    for code, name in parse_default_rooms(flask_app.config.get('DEFAULT_ROOMS', '')):
        registry.seed(code, name)

    broadcaster = Broadcaster(
        socketio=socketio,
        queue_size=flask_app.config.get('SUBSCRIBER_QUEUE_SIZE', 64),
        subscriber_timeout=flask_app.config.get('SUBSCRIBER_TIMEOUT_SEC', 60),
        heartbeat_interval=flask_app.config.get('SSE_HEARTBEAT_SEC', 30),
        clock=registry.clock,
    )
    service = TimerService(
        registry,
        LabelStore(),
        broadcaster,
        push_display=flask_app.config.get('DISPLAY_PUSH_ENABLED', True),
    )

    # Background driver tasks are off in TESTING unless explicitly enabled
    testing = flask_app.config.get('TESTING', False)
    run_tasks = not testing or flask_app.config.get('ENABLE_DRIVER_IN_TESTS', False)
    driver = CountdownDriver(
        step=service.tick,
        spawn=socketio.start_background_task if run_tasks else None,
        sleep=socketio.sleep,
        interval=flask_app.config.get('TIMER_TICK_INTERVAL_MS', 250) / 1000.0,
    )
    service.attach_driver(driver)
    flask_app.extensions['studio_timer'] = service

    from studio_timer.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from studio_timer.main import main
    flask_app.register_blueprint(main)

    from studio_timer.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from studio_timer.api.timers import timers, labels
    flask_app.register_blueprint(timers, url_prefix='/api/timers')
    flask_app.register_blueprint(labels, url_prefix='/api/labels')

    # Register Socket.IO event handlers
    from studio_timer.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=testing)

    if run_tasks and registry.idle_ttl:
        from studio_timer.services.timers.housekeeping import start_idle_eviction
        start_idle_eviction(flask_app, service)

    @click.command('rooms-list')
    def rooms_list_command():
        """Lists live rooms with their version and last activity."""
        for room in registry.rooms():
            running = sum(1 for t in room.timers if t.is_running)
            click.echo(f"{room.code}\tv{room.version}\trunning={running}\tlast_activity={room.last_activity_at:.0f}\t{room.name}")

    @click.command('rooms-evict')
    def rooms_evict_command():
        """Evicts rooms idle for longer than ROOM_IDLE_TTL_SEC."""
        evicted = service.evict_idle()
        click.echo(f"Evicted {len(evicted)} room(s): {', '.join(evicted) or '-'}")

    flask_app.cli.add_command(rooms_list_command)
    flask_app.cli.add_command(rooms_evict_command)

    return flask_app
