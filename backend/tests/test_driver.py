import json
import threading

from studio_timer.models import Phase
from studio_timer.services.timers import engine
from studio_timer.services.timers.driver import CountdownDriver
from studio_timer.services.timers.engine import Command


def _start(service, code, digits='10', timer_id=0):
    service.execute(code, Command(engine.SET_INPUT, digits), timer_id)
    return service.execute(code, Command(engine.COMMIT), timer_id)


def test_entering_running_starts_exactly_one_task(service, clock):
    driver = service.driver
    _start(service, 'CTRLFR')
    assert driver.active() == [('CTRLFR', 0)]
    # Commit on a running timer is a no-op and must not start a second task
    service.execute('CTRLFR', Command(engine.COMMIT), 0)
    assert driver.active() == [('CTRLFR', 0)]


def test_leaving_running_cancels_the_task(service, clock):
    driver = service.driver
    _start(service, 'CTRLFR')
    service.execute('CTRLFR', Command(engine.PAUSE), 0)
    assert not driver.is_active('CTRLFR', 0)
    service.execute('CTRLFR', Command(engine.COMMIT), 0)
    assert driver.is_active('CTRLFR', 0)
    # Digit on a running timer aborts the run and the task with it
    service.execute('CTRLFR', Command(engine.DIGIT, 7), 0)
    assert not driver.is_active('CTRLFR', 0)
    assert service.registry.timer('CTRLFR', 0).raw_input == '7'


def test_reset_all_cancels_every_task(service, clock):
    _start(service, 'CTRLEN', timer_id=0)
    _start(service, 'CTRLEN', timer_id=1)
    assert len(service.driver.active()) == 2
    service.execute('CTRLEN', Command(engine.RESET_ALL))
    assert service.driver.active() == []


def test_run_once_finishes_and_retires(service, clock):
    driver = service.driver
    _start(service, 'CTRLFR', digits='5')
    clock.advance(2)
    assert driver.run_once('CTRLFR', 0) is True
    clock.advance(3)
    assert driver.run_once('CTRLFR', 0) is False
    assert service.registry.timer('CTRLFR', 0).phase is Phase.FINISHED
    assert not driver.is_active('CTRLFR', 0)


def test_late_driver_still_finishes_at_zero(service, clock):
    _start(service, 'CTRLFR', digits='5')
    # The host stalls for far longer than the cadence
    clock.advance(3600)
    service.driver.run_once('CTRLFR', 0)
    snapshot = service.snapshot_for('CTRLFR')
    assert snapshot['timers'][0]['phase'] == 'finished'
    assert snapshot['timers'][0]['timeLeft'] == 0


def test_worker_loop_exits_when_cancelled(service, clock):
    driver = service.driver
    _start(service, 'CTRLFR', digits='100')
    key, generation = ('CTRLFR', 0), driver._generations[('CTRLFR', 0)]
    calls = []

    def fake_sleep(seconds):
        calls.append(seconds)
        clock.advance(seconds)
        if len(calls) == 3:
            service.execute('CTRLFR', Command(engine.PAUSE), 0)

    driver.sleep = fake_sleep
    driver._worker(key, generation)
    assert len(calls) == 3
    assert service.registry.timer('CTRLFR', 0).phase is Phase.PAUSED


def test_worker_loop_runs_until_finish(service, clock):
    driver = service.driver
    _start(service, 'CTRLFR', digits='2')
    key, generation = ('CTRLFR', 0), driver._generations[('CTRLFR', 0)]
    driver.sleep = lambda seconds: clock.advance(seconds)
    driver._worker(key, generation)
    assert service.registry.timer('CTRLFR', 0).phase is Phase.FINISHED
    assert driver.active() == []


def test_stale_generation_does_not_cancel_new_task(service, clock):
    driver = service.driver
    _start(service, 'CTRLFR')
    old = driver._generations[('CTRLFR', 0)]
    new = driver.start('CTRLFR', 0)
    assert not driver.cancel('CTRLFR', 0, old)
    assert driver._generations[('CTRLFR', 0)] == new


def test_display_push_on_whole_second_change(service, clock):
    sub = service.broadcaster.subscribe('CTRLFR')
    _start(service, 'CTRLFR', digits='30')
    pushed_before = sub.queue.qsize()
    clock.advance(0.3)
    service.tick('CTRLFR', 0)   # first display value is pushed
    clock.advance(0.3)
    service.tick('CTRLFR', 0)   # same second, nothing new
    clock.advance(0.5)
    service.tick('CTRLFR', 0)   # next second
    assert sub.queue.qsize() - pushed_before == 2


def test_concurrent_pause_and_resume_keep_driver_in_step(service, clock):
    driver = service.driver
    _start(service, 'CTRLFR', digits='100')
    sub = service.broadcaster.subscribe('CTRLFR')
    original_sync = driver.sync
    entered, release = threading.Event(), threading.Event()

    def slow_first_sync(code, transitions):
        if not entered.is_set():
            entered.set()
            release.wait(2)
        original_sync(code, transitions)

    driver.sync = slow_first_sync
    pause = threading.Thread(target=service.execute, args=('CTRLFR', Command(engine.PAUSE), 0))
    resume = threading.Thread(target=service.execute, args=('CTRLFR', Command(engine.COMMIT), 0))
    pause.start()
    assert entered.wait(2)
    resume.start()
    # The resume waits for the pause to finish its side effects
    resume.join(0.2)
    assert resume.is_alive()
    release.set()
    pause.join(2)
    resume.join(2)

    assert service.registry.timer('CTRLFR', 0).phase is Phase.RUNNING
    assert driver.is_active('CTRLFR', 0)
    versions = []
    while not sub.queue.empty():
        versions.append(json.loads(sub.queue.get_nowait()[len('data: '):])['version'])
    assert versions == sorted(versions)
    assert len(versions) == 2


def test_failing_step_retires_the_task():
    def broken_step(code, timer_id):
        raise ValueError('bad stored input')

    driver = CountdownDriver(step=broken_step)
    generation = driver.start('ROOM01', 0)
    assert driver.run_once('ROOM01', 0, generation) is False
    assert not driver.is_active('ROOM01', 0)
    # A new run of the same timer can still start
    driver.start('ROOM01', 0)
    assert driver.is_active('ROOM01', 0)
