# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pre-saved mini-batch files and the iterator that reads them back.

Each batch lives in its own file named by a printf-style pattern:

    trainFolder/
      mnist-train-0.bin
      mnist-train-1.bin
      ...

A file holds one torch.save payload:

    {"features": float32 (N, C*H*W), "labels": float32 one-hot (N, K)}

The iterator finds how many batches exist by probing 0, 1, 2, ... until the
first missing index, then serves them in that order. Unrelated files in the
same directory are ignored, and a gap ends the sequence.
"""

import io
import logging
import pickle
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

import torch

from presave.data.exceptions import BatchFormatError
from presave.logging.logger import get_logger
from presave.utils.filesystem import atomic_write_bytes
from presave.utils.paths import format_batch_path, validate_batch_pattern

logger: logging.Logger = get_logger(__name__)

FEATURES_KEY = "features"
LABELS_KEY = "labels"


@dataclass(frozen=True)
class MiniBatch:
    """One mini-batch: feature rows and their one-hot labels."""

    features: torch.Tensor
    labels: torch.Tensor

    @property
    def num_examples(self) -> int:
        return int(self.features.shape[0])


PreProcessor = Callable[[MiniBatch], MiniBatch]


def _validate_batch(features: object, labels: object, source: str) -> MiniBatch:
    if not isinstance(features, torch.Tensor) or not isinstance(labels, torch.Tensor):
        raise BatchFormatError(f"{source}: features and labels must be tensors")
    if features.dim() < 2:
        raise BatchFormatError(
            f"{source}: features must be at least 2-D (examples first), got shape {tuple(features.shape)}"
        )
    if labels.dim() != 2:
        raise BatchFormatError(
            f"{source}: labels must be 2-D one-hot (examples, classes), got shape {tuple(labels.shape)}"
        )
    if features.shape[0] != labels.shape[0]:
        raise BatchFormatError(
            f"{source}: {features.shape[0]} feature rows but {labels.shape[0]} label rows"
        )
    if not features.is_floating_point() or not labels.is_floating_point():
        raise BatchFormatError(
            f"{source}: features and labels must be floating point, got {features.dtype} and {labels.dtype}"
        )
    return MiniBatch(features=features, labels=labels)


def save_batch(batch: MiniBatch, path: Path) -> Path:
    """
    Serialize a batch to `path` atomically.

    Returns:
        The path written.
    """
    _validate_batch(batch.features, batch.labels, str(path))
    buffer = io.BytesIO()
    torch.save(
        {
            FEATURES_KEY: batch.features.detach().cpu().contiguous(),
            LABELS_KEY: batch.labels.detach().cpu().contiguous(),
        },
        buffer,
    )
    atomic_write_bytes(path, buffer.getvalue())
    return path


def load_batch(path: Path) -> MiniBatch:
    """
    Read one batch file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        BatchFormatError: If the file can't be read or decoded as a batch.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Batch file not found: {path}")

    try:
        payload = torch.load(path, map_location="cpu", weights_only=True)
    except OSError as err:
        raise BatchFormatError(f"Cannot read batch file {path}: {err}") from err
    except (RuntimeError, EOFError, ValueError, pickle.UnpicklingError) as err:
        raise BatchFormatError(f"Cannot decode batch file {path}: {err}") from err

    if not isinstance(payload, dict) or FEATURES_KEY not in payload or LABELS_KEY not in payload:
        raise BatchFormatError(
            f"Batch file {path} must hold a dict with '{FEATURES_KEY}' and '{LABELS_KEY}'"
        )

    return _validate_batch(payload[FEATURES_KEY], payload[LABELS_KEY], str(path))


class ExistingMiniBatchDataset:
    """
    Iterates over batch files that were saved ahead of time.

    Exposes both an explicit cursor API (has_next / next / reset) and the
    Python iterator protocol. Iterating again after exhaustion requires an
    explicit reset().

    Args:
        root_dir: Directory holding the batch files.
        pattern: Filename pattern with exactly one %d, e.g. "mnist-train-%d.bin".
        pre_processor: Optional callable applied to every loaded batch.

    Raises:
        FileNotFoundError: If root_dir doesn't exist or isn't a directory.
        ValueError: If the pattern is malformed.
    """

    reset_supported = True
    async_supported = True

    def __init__(
        self,
        root_dir: Path,
        pattern: str,
        pre_processor: Optional[PreProcessor] = None,
    ) -> None:
        if not root_dir.is_dir():
            raise FileNotFoundError(f"Batch directory not found: {root_dir}")

        self.root_dir = root_dir
        self.pattern = validate_batch_pattern(pattern)
        self.pre_processor = pre_processor
        self._cursor = 0
        self._total_batches = self._count_batches()

        if self._total_batches == 0:
            logger.warning(
                "No batch files found",
                extra={"root_dir": str(root_dir), "pattern": pattern},
            )
        else:
            logger.debug(
                "Discovered batch files",
                extra={
                    "root_dir": str(root_dir),
                    "pattern": pattern,
                    "count": self._total_batches,
                },
            )

    def _count_batches(self) -> int:
        count = 0
        while format_batch_path(self.root_dir, self.pattern, count).is_file():
            count += 1
        return count

    @property
    def total_batches(self) -> int:
        return self._total_batches

    def path_for(self, index: int) -> Path:
        return format_batch_path(self.root_dir, self.pattern, index)

    def has_next(self) -> bool:
        return self._cursor < self._total_batches

    def next(self) -> MiniBatch:
        """
        Load the next batch.

        Raises:
            StopIteration: When every batch has been served.
            BatchFormatError: If the file on disk is corrupt.
        """
        if not self.has_next():
            raise StopIteration

        path = self.path_for(self._cursor)
        batch = load_batch(path)
        self._cursor += 1

        if self.pre_processor is not None:
            batch = self.pre_processor(batch)
        return batch

    def reset(self) -> None:
        self._cursor = 0

    def __iter__(self) -> Iterator[MiniBatch]:
        return self

    def __next__(self) -> MiniBatch:
        return self.next()

    def __len__(self) -> int:
        return self._total_batches
