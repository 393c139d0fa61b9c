import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Comma separated list of allowed origins, '*' allows any
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    # Room layout
    TIMERS_PER_ROOM = int(os.environ.get('TIMERS_PER_ROOM', '2'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Pre-seeded rooms as CODE:Name pairs
    DEFAULT_ROOMS = os.environ.get('DEFAULT_ROOMS', 'CTRLFR:Control Room FR,CTRLEN:Control Room EN')
    # Idle rooms are evicted after this many seconds. 0 disables.
    ROOM_IDLE_TTL_SEC = int(os.environ.get('ROOM_IDLE_TTL_SEC', '86400'))
    # Countdown driver cadence (ms)
    TIMER_TICK_INTERVAL_MS = int(os.environ.get('TIMER_TICK_INTERVAL_MS', '250'))
    # Push a snapshot whenever a running timer's whole-second display changes
    DISPLAY_PUSH_ENABLED = os.environ.get('DISPLAY_PUSH_ENABLED', '1') == '1'
    # Server-sent event stream keep-alive (sec)
    SSE_HEARTBEAT_SEC = int(os.environ.get('SSE_HEARTBEAT_SEC', '30'))
    # Stream subscribers that stop draining for this long are pruned (sec)
    SUBSCRIBER_TIMEOUT_SEC = int(os.environ.get('SUBSCRIBER_TIMEOUT_SEC', '60'))
    SUBSCRIBER_QUEUE_SIZE = int(os.environ.get('SUBSCRIBER_QUEUE_SIZE', '64'))
    # Socket.IO keep-alive (sec)
    SOCKETIO_PING_INTERVAL = int(os.environ.get('SOCKETIO_PING_INTERVAL', '25'))
    SOCKETIO_PING_TIMEOUT = int(os.environ.get('SOCKETIO_PING_TIMEOUT', '60'))


def parse_default_rooms(value):
    """Turn 'CODE:Name,CODE2:Name 2' into [(code, name), ...]."""
    rooms = []
    for chunk in (value or '').split(','):
        chunk = chunk.strip()
        if not chunk:
            continue
        code, _, name = chunk.partition(':')
        rooms.append((code.strip().upper(), name.strip()))
    return rooms
