from page_adblocker.scheduling import ManualScheduler


def test_callbacks_run_in_deadline_order():
    scheduler = ManualScheduler()
    order = []
    scheduler.call_later(3.0, order.append, "c")
    scheduler.call_later(0.5, order.append, "a")
    scheduler.call_later(1.5, order.append, "b")

    assert scheduler.advance(1.0) == 1
    assert order == ["a"]
    assert scheduler.time() == 1.0
    assert scheduler.advance(5.0) == 2
    assert order == ["a", "b", "c"]


def test_equal_deadlines_are_fifo():
    scheduler = ManualScheduler()
    order = []
    for name in ("first", "second", "third"):
        scheduler.call_later(1.0, order.append, name)
    scheduler.advance(1.0)
    assert order == ["first", "second", "third"]


def test_cancelled_handles_never_run():
    scheduler = ManualScheduler()
    hits = []
    handle = scheduler.call_later(1.0, hits.append, 1)
    scheduler.call_later(2.0, hits.append, 2)
    handle.cancel()

    assert handle.cancelled() is True
    assert scheduler.pending_count == 1
    assert scheduler.next_deadline() == 2.0
    scheduler.advance(10.0)
    assert hits == [2]
    assert scheduler.next_deadline() is None


def test_callbacks_can_reschedule_themselves():
    scheduler = ManualScheduler()
    ticks = []

    def tick():
        ticks.append(scheduler.time())
        if len(ticks) < 3:
            scheduler.call_later(1.0, tick)

    scheduler.call_later(1.0, tick)
    scheduler.advance(10.0)
    assert ticks == [1.0, 2.0, 3.0]


def test_run_pending_only_runs_due_callbacks():
    scheduler = ManualScheduler(start=100.0)
    hits = []
    scheduler.call_later(0, hits.append, "now")
    scheduler.call_later(0.1, hits.append, "later")
    assert scheduler.run_pending() == 1
    assert hits == ["now"]
