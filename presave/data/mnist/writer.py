# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pre-save step: raw MNIST → numbered batch files.

Run this once before training. It reads the four IDX files, scales pixels to
[0, 1], flattens each image into a row vector, one-hot encodes the labels and
writes fixed-size batches with the configured patterns:

    trainFolder/mnist-train-0.bin ... mnist-train-937.bin
    testFolder/mnist-test-0.bin   ... mnist-test-156.bin

The last batch of a split keeps whatever examples are left over, so no
example is dropped. The training split can be shuffled with a seeded
generator; the test split is always written in file order.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import torch

from presave.config.schema import DataConfig, PresaveStepConfig
from presave.data.minibatch.core import MiniBatch, save_batch
from presave.data.mnist.idx import read_idx_images, read_idx_labels, resolve_idx_path
from presave.logging.logger import get_logger
from presave.utils.paths import ensure_directory, format_batch_path, resolve_under, validate_batch_pattern

logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class SplitResult:
    """What got written for one split."""

    directory: str
    pattern: str
    batches: int
    examples: int


@dataclass(frozen=True)
class PresaveResult:
    train: SplitResult
    test: SplitResult


def to_feature_rows(images: torch.Tensor) -> torch.Tensor:
    """uint8 (N, H, W) images → float32 (N, H*W) rows in [0, 1]."""
    return images.reshape(images.shape[0], -1).to(torch.float32) / 255.0


def one_hot(labels: torch.Tensor, num_classes: int) -> torch.Tensor:
    """
    Index labels → float32 one-hot rows.

    Raises:
        ValueError: If any label is outside [0, num_classes).
    """
    if labels.numel() and (labels.min() < 0 or labels.max() >= num_classes):
        raise ValueError(
            f"Labels must be in [0, {num_classes}), got range "
            f"[{int(labels.min())}, {int(labels.max())}]"
        )
    return torch.nn.functional.one_hot(labels.to(torch.long), num_classes).to(torch.float32)


def write_batches(
    features: torch.Tensor,
    labels: torch.Tensor,
    output_dir: Path,
    pattern: str,
    batch_size: int,
) -> int:
    """
    Split features/labels into batches and save them as pattern % 0, 1, 2, ...

    Returns:
        Number of batch files written.

    Raises:
        ValueError: On a bad pattern, batch_size < 1, or mismatched row counts.
    """
    validate_batch_pattern(pattern)
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if features.shape[0] != labels.shape[0]:
        raise ValueError(
            f"{features.shape[0]} feature rows but {labels.shape[0]} label rows"
        )

    ensure_directory(output_dir)
    written = 0
    for start in range(0, features.shape[0], batch_size):
        end = start + batch_size
        batch = MiniBatch(features=features[start:end].clone(), labels=labels[start:end].clone())
        save_batch(batch, format_batch_path(output_dir, pattern, written))
        written += 1

    # Leftovers from an earlier, larger run would extend the index sequence.
    stale = written
    while format_batch_path(output_dir, pattern, stale).is_file():
        format_batch_path(output_dir, pattern, stale).unlink()
        stale += 1
    if stale > written:
        logger.warning(
            "Removed stale batch files",
            extra={"output_dir": str(output_dir), "removed": stale - written},
        )

    logger.info(
        "Batches written",
        extra={
            "output_dir": str(output_dir),
            "pattern": pattern,
            "batches": written,
            "examples": int(features.shape[0]),
        },
    )
    return written


def _load_split(raw_dir: Path, images_name: str, labels_name: str) -> tuple[torch.Tensor, torch.Tensor]:
    images = read_idx_images(resolve_idx_path(raw_dir, images_name))
    labels = read_idx_labels(resolve_idx_path(raw_dir, labels_name))
    if images.shape[0] != labels.shape[0]:
        raise ValueError(
            f"{images_name} has {images.shape[0]} images but {labels_name} has {labels.shape[0]} labels"
        )
    return images, labels


def presave_mnist(
    presave_cfg: PresaveStepConfig,
    data_cfg: DataConfig,
    base_dir: Path,
    num_classes: int = 10,
    seed: int = 123,
) -> PresaveResult:
    """
    Convert the raw MNIST split into batch files for both train and test.

    Args:
        presave_cfg: Where the IDX files are and how big each batch is.
        data_cfg: Output directories and filename patterns.
        base_dir: Directory relative paths resolve against.
        num_classes: Width of the one-hot label rows.
        seed: Seed for the training-split shuffle.
    """
    raw_dir = resolve_under(base_dir, presave_cfg.raw_directory)
    train_dir = resolve_under(base_dir, data_cfg.train_directory)
    test_dir = resolve_under(base_dir, data_cfg.test_directory)

    logger.info(
        "Pre-saving MNIST",
        extra={
            "raw_dir": str(raw_dir),
            "train_dir": str(train_dir),
            "test_dir": str(test_dir),
            "batch_size": presave_cfg.batch_size,
        },
    )

    train_images, train_labels = _load_split(
        raw_dir, presave_cfg.train_images, presave_cfg.train_labels
    )
    if presave_cfg.shuffle_train:
        generator = torch.Generator()
        generator.manual_seed(seed)
        order = torch.randperm(train_images.shape[0], generator=generator)
        train_images = train_images[order]
        train_labels = train_labels[order]

    train_batches = write_batches(
        to_feature_rows(train_images),
        one_hot(train_labels, num_classes),
        train_dir,
        data_cfg.train_pattern,
        presave_cfg.batch_size,
    )

    test_images, test_labels = _load_split(
        raw_dir, presave_cfg.test_images, presave_cfg.test_labels
    )
    test_batches = write_batches(
        to_feature_rows(test_images),
        one_hot(test_labels, num_classes),
        test_dir,
        data_cfg.test_pattern,
        presave_cfg.batch_size,
    )

    return PresaveResult(
        train=SplitResult(
            directory=str(train_dir),
            pattern=data_cfg.train_pattern,
            batches=train_batches,
            examples=int(train_images.shape[0]),
        ),
        test=SplitResult(
            directory=str(test_dir),
            pattern=data_cfg.test_pattern,
            batches=test_batches,
            examples=int(test_images.shape[0]),
        ),
    )
