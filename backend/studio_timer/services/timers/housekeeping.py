from studio_timer import socketio


def eviction_interval(idle_ttl: float) -> float:
    """How often to sweep: a quarter of the TTL, between 1s and 5 minutes."""
    return max(1.0, min(idle_ttl / 4.0, 300.0))


def start_idle_eviction(app, service) -> None:
    """Run idle-room eviction in a background task for the life of the process."""
    interval = eviction_interval(service.registry.idle_ttl)

    def _runner():
        while True:
            socketio.sleep(interval)
            evicted = service.evict_idle()
            if evicted:
                app.logger.info(f"[room-evict] swept={len(evicted)} remaining={len(service.registry.codes())}")

    app.logger.info(f"[room-evict] sweeping every {interval:.0f}s ttl={service.registry.idle_ttl}s")
    socketio.start_background_task(_runner)
