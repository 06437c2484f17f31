from deadbyai.services.timer import Countdown, TimerService


class Recorder:
    def __init__(self):
        self.ticks = []
        self.expired = 0
        self.errors = []

    def tick(self, remaining):
        self.ticks.append(remaining)

    def expire(self):
        self.expired += 1

    def error(self, exc):
        self.errors.append(exc)


def test_countdown_ticks_then_expires_once():
    rec = Recorder()
    countdown = Countdown('ROOM01', 3, rec.tick, rec.expire)
    assert countdown.step() is True
    assert countdown.step() is True
    assert countdown.step() is False
    assert countdown.step() is False
    assert rec.ticks == [2, 1]
    assert rec.expired == 1
    assert countdown.finished


def test_cancelled_countdown_delivers_nothing():
    rec = Recorder()
    countdown = Countdown('ROOM01', 3, rec.tick, rec.expire)
    countdown.step()
    countdown.cancel()
    assert countdown.step() is False
    assert rec.ticks == [2]
    assert rec.expired == 0


def test_run_loop_uses_given_sleep():
    rec = Recorder()
    slept = []
    countdown = Countdown('ROOM01', 2, rec.tick, rec.expire)
    countdown.run(sleep=slept.append)
    assert slept == [1, 1]
    assert rec.ticks == [1]
    assert rec.expired == 1


def test_run_stops_when_cancelled_during_sleep():
    rec = Recorder()
    countdown = Countdown('ROOM01', 5, rec.tick, rec.expire)
    countdown.run(sleep=lambda _: countdown.cancel())
    assert rec.ticks == []
    assert rec.expired == 0


def test_callback_error_is_reported_and_stops_countdown():
    rec = Recorder()

    def broken_tick(remaining):
        raise RuntimeError('tick failed')

    countdown = Countdown('ROOM01', 3, broken_tick, rec.expire, on_error=rec.error)
    assert countdown.step() is False
    assert countdown.cancelled
    assert len(rec.errors) == 1
    assert countdown.step() is False
    assert rec.expired == 0


def test_service_replaces_countdown_for_same_key():
    rec = Recorder()
    timers = TimerService(autostart=False)
    first = timers.start('ROOM01', 60, rec.tick, rec.expire)
    second = timers.start('ROOM01', 120, rec.tick, rec.expire)
    assert first.cancelled
    assert timers.get('ROOM01') is second
    assert timers.is_active('ROOM01')


def test_service_cancel_and_cancel_all():
    rec = Recorder()
    timers = TimerService(autostart=False)
    a = timers.start('A', 60, rec.tick, rec.expire)
    b = timers.start('B', 60, rec.tick, rec.expire)
    timers.cancel('A')
    assert a.cancelled
    assert not timers.is_active('A')
    timers.cancel('missing')
    timers.cancel_all()
    assert b.cancelled
    assert timers.get('B') is None


def test_service_autostarts_on_spawner():
    spawned = []
    timers = TimerService(spawn=lambda fn, *args: spawned.append((fn, args)), sleep=lambda s: None)
    countdown = timers.start('ROOM01', 60, lambda r: None, lambda: None)
    assert spawned == [(countdown.run, (timers._sleep,))]


def test_service_without_spawner_never_autostarts():
    timers = TimerService(autostart=True)
    assert timers.autostart is False
