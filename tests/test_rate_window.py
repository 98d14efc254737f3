import itertools
import threading
import time

from luno_client.rate_window import RateWindow

T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeTimer:
    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


def make_window():
    FakeTimer.created = []
    clock = FakeClock()
    return RateWindow(clock=clock, timer_factory=FakeTimer), clock


def test_count_only_includes_calls_in_the_last_minute():
    w, clock = make_window()

    for offset in (0, 10_000, 20_000, 30_000):
        w.record(T0 + offset)
    clock.advance(75_000)

    # T0 and T0+10s are older than now-60s
    assert w.count() == 2
    assert list(w._timestamps) == [T0 + 20_000, T0 + 30_000]


def test_entry_exactly_at_window_edge_is_kept():
    w, clock = make_window()
    w.record(T0)
    clock.advance(60_000)
    assert w.count() == 1
    clock.advance(1)
    assert w.count() == 0


def test_count_is_idempotent():
    w, clock = make_window()
    w.record(T0)
    w.record(T0 + 5)
    clock.advance(30_000)

    assert w.count() == w.count() == 2


def test_record_arms_a_single_daemon_timer():
    w, _ = make_window()
    w.record(T0)
    w.record(T0)
    w.record(T0 + 1)

    assert len(FakeTimer.created) == 1
    timer = FakeTimer.created[0]
    assert timer.started
    assert timer.daemon is True
    assert timer.interval == 60


def test_count_does_not_replace_a_pending_timer():
    w, clock = make_window()
    w.record(T0)
    first = w._timer

    for _ in range(5):
        clock.advance(1_000)
        assert w.count() == 1

    assert w._timer is first
    assert not first.cancelled
    assert len(FakeTimer.created) == 1


def test_fired_timer_is_replaced_while_entries_remain():
    w, clock = make_window()
    w.record(T0)
    w.record(T0 + 30_000)
    first = w._timer

    clock.advance(60_001)
    first.fire()

    assert len(w) == 1
    assert w._timer is not None
    assert w._timer is not first
    assert w._timer.started


def test_timer_released_once_window_is_empty():
    w, clock = make_window()
    w.record(T0)
    timer = w._timer

    clock.advance(60_001)
    timer.fire()

    assert len(w) == 0
    assert w._timer is None
    # nothing left to refresh
    assert len(FakeTimer.created) == 1


def test_retract_removes_one_matching_entry():
    w, _ = make_window()
    w.record(T0)
    w.record(T0 + 5)
    w.record(T0 + 5)
    w.record(T0 + 9)

    assert w.retract(T0 + 5) is True
    assert w.count() == 3
    assert list(w._timestamps) == [T0, T0 + 5, T0 + 9]


def test_retract_missing_timestamp_is_a_noop():
    w, _ = make_window()
    w.record(T0)
    assert w.retract(T0 + 1) is False
    assert w.count() == 1


def test_retract_of_stale_entry_does_not_change_count():
    w, clock = make_window()
    w.record(T0)
    w.record(T0 + 50_000)
    clock.advance(70_000)

    # T0 has not been pruned yet, but it is outside the window
    assert w.retract(T0) is True
    assert w.count() == 1


def test_close_cancels_timer():
    w, _ = make_window()
    w.record(T0)
    timer = w._timer
    w.close()
    assert timer.cancelled
    assert w._timer is None


def test_default_timer_does_not_keep_process_alive():
    w = RateWindow()
    w.record(w.now_ms())
    try:
        assert isinstance(w._timer, threading.Timer)
        assert w._timer.daemon is True
    finally:
        w.close()


def test_concurrent_records_are_all_counted():
    w = RateWindow()
    now = w.now_ms()

    def worker():
        for _ in range(200):
            w.record(now)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        assert w.count() == 1000
    finally:
        w.close()


def test_record_reads_clock_and_returns_timestamp():
    w, clock = make_window()
    assert w.record() == T0
    clock.advance(7)
    assert w.record() == T0 + 7
    assert list(w._timestamps) == [T0, T0 + 7]


def test_records_stay_chronological_under_interleaving():
    ticks = itertools.count(T0)

    def slow_clock():
        value = next(ticks)
        # widen the gap between reading the clock and appending
        time.sleep(0.0005)
        return value

    w = RateWindow(clock=slow_clock)

    def worker():
        for _ in range(50):
            w.record()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        recorded = list(w._timestamps)
        assert len(recorded) == 200
        assert recorded == sorted(recorded)
    finally:
        w.close()


def test_no_timer_is_armed_after_close():
    w, clock = make_window()
    w.record(T0)
    timer = w._timer
    w.close()

    # a refresh already in flight, and later reads, must not re-arm
    timer.fire()
    clock.advance(1_000)
    assert w.count() == 1
    assert w._timer is None
    assert len(FakeTimer.created) == 1
