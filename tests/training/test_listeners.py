# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for ScoreIterationListener."""

import logging

import pytest

from presave.training.listeners.core import ScoreIterationListener

_LISTENER_LOGGER = "presave.training.listeners.core"


class _RecordingHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture()
def listener_records() -> list[logging.LogRecord]:
    """
    The presave loggers don't propagate to root, so attach a recording
    handler to the listener's module logger directly.
    """
    handler = _RecordingHandler()
    module_logger = logging.getLogger(_LISTENER_LOGGER)
    module_logger.addHandler(handler)
    yield handler.records  # type: ignore[misc]
    module_logger.removeHandler(handler)


class TestScoreIterationListener:
    def test_records_history(self) -> None:
        listener = ScoreIterationListener()
        listener.iteration_done(0, 0, 2.3, 64)
        listener.iteration_done(1, 0, 1.9, 64)

        assert [r.score for r in listener.history] == [2.3, 1.9]
        assert listener.history[1].iteration == 1
        assert listener.last_score == 1.9

    def test_no_score_before_first_iteration(self) -> None:
        assert ScoreIterationListener().last_score is None

    def test_history_is_bounded(self) -> None:
        listener = ScoreIterationListener(history_size=3)
        for i in range(10):
            listener.iteration_done(i, 0, float(i), 1)
        assert [r.iteration for r in listener.history] == [7, 8, 9]

    def test_logs_every_n_iterations(self, listener_records: list[logging.LogRecord]) -> None:
        listener = ScoreIterationListener(print_every=5)
        for i in range(12):
            listener.iteration_done(i, 0, 1.0, 8)

        logged = [
            r.iteration  # type: ignore[attr-defined]
            for r in listener_records
            if r.getMessage() == "Score at iteration"
        ]
        assert logged == [0, 5, 10]

    def test_log_line_carries_throughput(self, listener_records: list[logging.LogRecord]) -> None:
        ScoreIterationListener().iteration_done(0, 2, 0.5, 32)

        record = listener_records[-1]
        assert record.epoch == 2  # type: ignore[attr-defined]
        assert record.score == 0.5  # type: ignore[attr-defined]
        assert record.examples_per_sec >= 0.0  # type: ignore[attr-defined]

    @pytest.mark.parametrize("print_every", [0, -1])
    def test_interval_must_be_positive(self, print_every: int) -> None:
        with pytest.raises(ValueError):
            ScoreIterationListener(print_every=print_every)
