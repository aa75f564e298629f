import pytest

from NEGF_QTpy.utils.timing import Clock, TimingManager, timed_function


def test_clock_accumulates():
    clock = Clock("solve")

    clock.start()
    assert clock.running
    clock.stop()
    clock.start()
    clock.stop()

    assert not clock.running
    assert clock.call_count == 2
    assert clock.elapsed() == clock.total_time
    assert clock.avg_time() == pytest.approx(clock.total_time / 2)


def test_clock_misuse():
    clock = Clock("solve")
    with pytest.raises(RuntimeError):
        clock.stop()
    clock.start()
    with pytest.raises(RuntimeError):
        clock.start()


def test_timed_function_stops_on_error():
    manager = TimingManager()

    @timed_function("failing", manager)
    def failing():
        raise ArithmeticError("singular")

    with pytest.raises(ArithmeticError):
        failing()
    with pytest.raises(ArithmeticError):
        failing()

    assert manager.clocks["failing"].call_count == 2
    assert not manager.clocks["failing"].running


def test_report(capsys):
    manager = TimingManager()
    manager.start("transmission")
    manager.stop("transmission")

    manager.report()

    assert "transmission" in capsys.readouterr().out
    with pytest.raises(ValueError):
        manager.stop("unknown")
