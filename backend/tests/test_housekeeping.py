from studio_timer.config import parse_default_rooms
from studio_timer.services.timers import engine
from studio_timer.services.timers.engine import Command
from studio_timer.services.timers.housekeeping import eviction_interval


def test_eviction_interval_bounds():
    assert eviction_interval(2) == 1.0
    assert eviction_interval(600) == 150.0
    assert eviction_interval(86400) == 300.0


def test_parse_default_rooms():
    assert parse_default_rooms(' ctrlfr:Control Room FR , XYZ123 ,') == [
        ('CTRLFR', 'Control Room FR'),
        ('XYZ123', ''),
    ]
    assert parse_default_rooms('') == []


def test_evicting_a_room_stops_its_tasks_and_streams(service, clock):
    code = service.create_room().code
    service.execute(code, Command(engine.DIGIT, 9), 0)
    service.execute(code, Command(engine.COMMIT), 0)
    sub = service.broadcaster.subscribe(code)
    assert service.driver.is_active(code, 0)

    clock.advance(service.registry.idle_ttl + 1)
    assert service.evict_idle() == [code]
    assert not service.driver.is_active(code, 0)
    assert service.broadcaster.subscriber_count(code) == 0
    assert sub.queue.get_nowait() is not None  # close marker
    assert set(service.registry.codes()) == {'CTRLFR', 'CTRLEN'}


def test_cli_commands(flask_app, service, clock):
    code = service.create_room().code
    runner = flask_app.test_cli_runner()

    listing = runner.invoke(args=['rooms-list'])
    assert listing.exit_code == 0
    assert 'CTRLFR' in listing.output
    assert code in listing.output

    clock.advance(service.registry.idle_ttl + 1)
    evicted = runner.invoke(args=['rooms-evict'])
    assert evicted.exit_code == 0
    assert f'Evicted 1 room(s): {code}' in evicted.output
