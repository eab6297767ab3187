# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Training listeners.

ScoreIterationListener logs the loss ("score") every N iterations, along
with throughput over the interval, as a structured log line:

  {"msg": "Score at iteration", "iteration": 40, "score": 0.3121,
   "examples_per_sec": 5120.4, ...}

It keeps a short history of recent scores so callers and tests can inspect
them without scraping logs.
"""

import logging
import time
from dataclasses import dataclass, field

from presave.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class IterationRecord:
    """Score for a single optimizer iteration."""

    iteration: int
    epoch: int
    score: float
    examples: int


@dataclass
class ScoreIterationListener:
    """
    Logs the score every `print_every` iterations.

    Args:
        print_every: Logging interval in iterations.
        history_size: How many recent IterationRecords to retain.
    """

    print_every: int = 1
    history_size: int = 100
    history: list[IterationRecord] = field(default_factory=list, init=False)
    _interval_examples: int = field(default=0, init=False)
    _interval_start: float = field(default_factory=time.monotonic, init=False)

    def __post_init__(self) -> None:
        if self.print_every < 1:
            raise ValueError(f"print_every must be >= 1, got {self.print_every}")

    def iteration_done(self, iteration: int, epoch: int, score: float, examples: int) -> None:
        """
        Record one finished optimizer iteration.

        Args:
            iteration: Global iteration counter (0-indexed).
            epoch: Current epoch (0-indexed).
            score: Loss for this iteration.
            examples: Number of examples in the mini-batch.
        """
        record = IterationRecord(iteration=iteration, epoch=epoch, score=score, examples=examples)
        self.history.append(record)
        if len(self.history) > self.history_size:
            del self.history[: len(self.history) - self.history_size]

        self._interval_examples += examples

        if iteration % self.print_every == 0:
            elapsed = time.monotonic() - self._interval_start
            examples_per_sec = self._interval_examples / elapsed if elapsed > 0 else 0.0
            logger.info(
                "Score at iteration",
                extra={
                    "iteration": iteration,
                    "epoch": epoch,
                    "score": round(score, 6),
                    "examples_per_sec": round(examples_per_sec, 1),
                },
            )
            self._interval_examples = 0
            self._interval_start = time.monotonic()

    @property
    def last_score(self) -> float | None:
        return self.history[-1].score if self.history else None
