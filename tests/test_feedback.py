import logging
import threading

import pytest

from NEGF_QTpy.feedback import ProgressFeedback, SolverContext, default_context


def test_progress_is_clamped():
    reported = []
    progress = ProgressFeedback(reported.append)

    progress.update(0.6)
    progress.update(0.6)
    progress.update(-5.0)

    assert reported == [pytest.approx(0.6), 1.0, 0.0]


def test_reset_and_finish():
    reported = []
    progress = ProgressFeedback(reported.append)

    progress.update(0.3)
    progress.reset()
    assert progress.value == 0.0
    progress.finish()

    assert reported == [pytest.approx(0.3), 0.0, 1.0]


def test_counters_are_summed_over_threads():
    progress = ProgressFeedback()
    barrier = threading.Barrier(4)

    def work():
        barrier.wait()
        for _ in range(10):
            progress.update(0.025)

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert progress.value == pytest.approx(1.0)
    assert len(progress._counters) == 4

    progress.reset()
    assert progress._counters == []
    progress.update(0.5)
    assert len(progress._counters) == 1
    assert progress.value == pytest.approx(0.5)


def test_context_logging(caplog):
    logger = logging.getLogger("negf.test")
    context = SolverContext(logger=logger, log_enabled=True)

    with caplog.at_level(logging.DEBUG, logger="negf.test"):
        context.debug("solved %d blocks", 3)
        context.warning("no convergence")

    assert [r.levelno for r in caplog.records] == [logging.DEBUG, logging.WARNING]
    assert caplog.records[0].getMessage() == "solved 3 blocks"


def test_disabled_context_is_silent(caplog):
    fallback = logging.getLogger("negf.fallback")

    with caplog.at_level(logging.DEBUG):
        default_context().warning("dropped", fallback=fallback)
        SolverContext(log_enabled=True).log("kept", fallback=fallback)

    assert [r.getMessage() for r in caplog.records] == ["kept"]
    assert caplog.records[0].name == "negf.fallback"


def test_with_progress_copies_context():
    reported = []
    context = SolverContext(log_enabled=True)

    copy = context.with_progress(reported.append)
    copy.progress.update(0.5)

    assert context.progress is None
    assert copy.log_enabled
    assert reported == [0.5]
