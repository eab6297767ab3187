# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for presave tests.

Fixtures here are available to every test file automatically.
We keep them minimal: just the stuff that multiple test modules need.

Nothing here touches real MNIST. Batch files are tiny synthetic tensors and
the model tests use a 12x12 input so a full train/evaluate pass takes well
under a second.
"""

import logging
import textwrap
from pathlib import Path
from typing import Callable

import pytest
import torch

from presave.data.minibatch.core import MiniBatch, save_batch
from presave.logging.logger import PACKAGE_LOGGER_NAME, configure_logging
from presave.utils.paths import format_batch_path

# Small LeNet geometry: 12 → 10 → 5 → 3 → 1 with 3x3 kernels and 2x2 pools.
TINY_SIDE = 12
TINY_INPUT = TINY_SIDE * TINY_SIDE
TINY_CLASSES = 3

BatchFactory = Callable[..., list[MiniBatch]]


@pytest.fixture(autouse=True)
def _default_logging() -> None:
    """Put the package logger back to INFO with no log file after every test."""
    yield  # type: ignore[misc]
    configure_logging("INFO")


class RecordingHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture()
def presave_log_records() -> list[logging.LogRecord]:
    """Every record that reaches the `presave` package logger during the test."""
    handler = RecordingHandler()
    package = logging.getLogger(PACKAGE_LOGGER_NAME)
    package.addHandler(handler)
    yield handler.records  # type: ignore[misc]
    package.removeHandler(handler)


def make_batch(num_examples: int, input_size: int, num_classes: int, seed: int) -> MiniBatch:
    """Random features in [0, 1) with labels cycling through the classes."""
    generator = torch.Generator()
    generator.manual_seed(seed)
    features = torch.rand((num_examples, input_size), generator=generator)
    indices = torch.arange(num_examples) % num_classes
    labels = torch.nn.functional.one_hot(indices, num_classes).to(torch.float32)
    return MiniBatch(features=features, labels=labels)


@pytest.fixture()
def batch_factory() -> BatchFactory:
    """
    Write synthetic batch files and return the batches that were written.

    Usage: batch_factory(directory, "train-%d.bin", sizes=[4, 4, 2])
    """

    def _write(
        directory: Path,
        pattern: str,
        sizes: list[int],
        input_size: int = TINY_INPUT,
        num_classes: int = TINY_CLASSES,
    ) -> list[MiniBatch]:
        directory.mkdir(parents=True, exist_ok=True)
        written = []
        for index, size in enumerate(sizes):
            batch = make_batch(size, input_size, num_classes, seed=index)
            save_batch(batch, format_batch_path(directory, pattern, index))
            written.append(batch)
        return written

    return _write


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """
    Create a minimal valid config YAML file in a temp directory.

    This is the smallest config that passes schema validation.
    Tests that need specific config values should write their own files.
    """
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "presave-test"
          seed: 42
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def tiny_config_text() -> str:
    """A complete config for the 12x12 synthetic setup, batches under trainFolder/testFolder."""
    return textwrap.dedent(f"""\
        global:
          config_version: "1.0.0"
          project_name: "presave-tiny"
          seed: 7
          log_level: "WARNING"
        data:
          config_version: "1.0.0"
          train_pattern: "train-%d.bin"
          test_pattern: "test-%d.bin"
          prefetch_queue_size: 2
        model:
          config_version: "1.0.0"
          height: {TINY_SIDE}
          width: {TINY_SIDE}
          num_classes: {TINY_CLASSES}
          conv1_filters: 4
          conv2_filters: 6
          kernel_size: 3
          pool_size: 2
          dense_units: 16
        train:
          config_version: "1.0.0"
          epochs: 2
          learning_rate: 0.05
    """)


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "presave-test"
          seed: 42
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
