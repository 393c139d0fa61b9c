from studio_timer import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use the SocketIO server so websocket and event-stream observers work in dev
    socketio.run(app, host='0.0.0.0', port=5000, debug=True, allow_unsafe_werkzeug=True)
