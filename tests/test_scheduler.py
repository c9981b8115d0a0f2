from module_installer.scheduler import TickScheduler


def test_deferred_call_runs_on_next_tick_only():
    s = TickScheduler()
    seen = []

    def first():
        seen.append("first")
        s.call_soon(lambda: seen.append("second"))

    s.call_soon(first)
    s.tick()
    assert seen == ["first"]
    s.tick()
    assert seen == ["first", "second"]
    assert not s.has_pending()


def test_update_runs_every_tick_until_removed():
    s = TickScheduler()
    count = []

    def update():
        count.append(1)
        if len(count) == 3:
            s.remove_update(update)

    s.add_update(update)
    assert s.run() == 3
    assert len(count) == 3


def test_run_respects_max_ticks():
    s = TickScheduler()
    s.add_update(lambda: None)
    assert s.run(max_ticks=4) == 4
    assert s.has_pending()


def test_remove_unknown_update_is_harmless():
    TickScheduler().remove_update(lambda: None)
