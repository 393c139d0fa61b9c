"""Error taxonomy and the Flask handlers that turn it into JSON responses."""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class StudioTimerError(Exception):
    status_code = 500

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class RoomNotFound(StudioTimerError):
    status_code = 404

    def __init__(self, code: str = ''):
        super().__init__('Room not found')
        self.code = code


class InvalidCommandShape(StudioTimerError):
    """Malformed payload, rejected before it reaches the transition engine."""
    status_code = 400


class TransportFailure(StudioTimerError):
    """A poll or command request did not produce a usable response."""
    status_code = 502


def register_error_handlers(flask_app) -> None:
    @flask_app.errorhandler(StudioTimerError)
    def handle_domain_error(exc):
        return jsonify({'error': exc.message}), exc.status_code

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({'error': exc.description}), exc.code

    @flask_app.errorhandler(Exception)
    def handle_unexpected(exc):
        logger.exception('[error] unhandled exception: %s', exc)
        return jsonify({'error': 'Internal server error'}), 500
