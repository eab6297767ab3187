# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Core training engine for presave.

The run is one explicit loop:

  build train/test iterators (pre-saved batches + background prefetch)
  build LeNet + SGD
  for each epoch:
      fit on every training batch
      log "Completed epoch"
      evaluate on every test batch, log the stats
      write the evaluation report
      reset the test iterator
      save a checkpoint

Each mini-batch gets `iterations` optimizer steps of:
  zero_grad → forward → cross-entropy (softmax + NLL) → backward → step
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import torch
import torch.nn as nn

from presave.config.schema import DataConfig, PresaveConfig
from presave.data.minibatch.core import ExistingMiniBatchDataset
from presave.data.prefetch.core import AsyncBatchIterator, BatchIterator
from presave.evaluation.metrics.engine import Evaluation
from presave.evaluation.reporting.writer import write_report
from presave.logging.logger import get_logger
from presave.model.lenet import LeNet, LeNetConfig
from presave.runtime.environment import select_device
from presave.training.checkpoint.core import (
    CheckpointMetadata,
    checkpoint_dir_for,
    load_checkpoint,
    save_checkpoint,
)
from presave.training.listeners.core import ScoreIterationListener
from presave.training.optimizer.core import create_optimizer
from presave.utils.paths import resolve_under

logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class FitResult:
    """Outcome of one pass over the training batches."""

    iterations: int
    examples: int
    last_score: float


@dataclass(frozen=True)
class TrainingResult:
    """Final result of a training run."""

    epochs_completed: int
    iterations: int
    final_score: float
    accuracy: float
    experiment_dir: str
    checkpoint_path: str


def build_model(config: PresaveConfig) -> LeNet:
    """Construct LeNet from the validated config."""
    if config.model is None:
        raise RuntimeError("Model config is required")
    return LeNet(LeNetConfig.from_schema(config.model, seed=config.global_config.seed))


def build_iterators(
    data_cfg: DataConfig,
    base_dir: Path,
) -> tuple[AsyncBatchIterator, AsyncBatchIterator]:
    """
    Open the train and test batch directories behind prefetching iterators.

    Raises:
        FileNotFoundError: If either batch directory is missing.
    """
    train_base = ExistingMiniBatchDataset(
        resolve_under(base_dir, data_cfg.train_directory), data_cfg.train_pattern
    )
    test_base = ExistingMiniBatchDataset(
        resolve_under(base_dir, data_cfg.test_directory), data_cfg.test_pattern
    )
    logger.info(
        "Batch iterators ready",
        extra={
            "train_batches": train_base.total_batches,
            "test_batches": test_base.total_batches,
            "queue_size": data_cfg.prefetch_queue_size,
        },
    )
    return (
        AsyncBatchIterator(train_base, queue_size=data_cfg.prefetch_queue_size),
        AsyncBatchIterator(test_base, queue_size=data_cfg.prefetch_queue_size),
    )


def fit(
    model: nn.Module,
    optimizer: torch.optim.Optimizer,
    iterator: BatchIterator,
    listener: ScoreIterationListener | None = None,
    iterations_per_batch: int = 1,
    epoch: int = 0,
    start_iteration: int = 0,
    device: torch.device | None = None,
) -> FitResult:
    """
    Train on every remaining batch of `iterator`.

    An iterator that is already exhausted is reset first (when it supports
    reset), so calling fit() once per epoch on the same iterator works.

    Returns:
        FitResult with the iteration count, examples seen and last loss.
    """
    if iterations_per_batch < 1:
        raise ValueError(f"iterations_per_batch must be >= 1, got {iterations_per_batch}")

    if not iterator.has_next() and iterator.reset_supported:
        iterator.reset()

    device = device if device is not None else torch.device("cpu")
    loss_fn = nn.CrossEntropyLoss()
    model.train()

    iteration = start_iteration
    examples = 0
    last_score = float("nan")

    while iterator.has_next():
        batch = iterator.next()
        features = batch.features.to(device)
        targets = batch.labels.argmax(dim=1).to(device)

        for _ in range(iterations_per_batch):
            optimizer.zero_grad()
            logits = model(features)
            loss = loss_fn(logits, targets)
            loss.backward()
            optimizer.step()

            last_score = loss.item()
            if listener is not None:
                listener.iteration_done(iteration, epoch, last_score, batch.num_examples)
            iteration += 1

        examples += batch.num_examples

    return FitResult(
        iterations=iteration - start_iteration,
        examples=examples,
        last_score=last_score,
    )


def evaluate(
    model: LeNet,
    iterator: BatchIterator,
    num_classes: int,
    device: torch.device | None = None,
) -> Evaluation:
    """Run the model over every remaining batch and tally the predictions."""
    device = device if device is not None else torch.device("cpu")
    evaluation = Evaluation(num_classes)
    while iterator.has_next():
        batch = iterator.next()
        output = model.output(batch.features.to(device))
        evaluation.eval(batch.labels, output)
    return evaluation


def run_training(
    config: PresaveConfig,
    experiment_dir: Path,
    base_dir: Path,
) -> TrainingResult:
    """
    Execute the full train/evaluate loop.

    Args:
        config: Validated config with data, model and train sections.
        experiment_dir: Experiment output directory.
        base_dir: Directory that relative batch directories resolve against.

    Returns:
        TrainingResult with the final score, accuracy and paths.

    Raises:
        RuntimeError: If a required config section is missing.
        FileNotFoundError: If a batch directory is missing.
    """
    train_cfg = config.train
    data_cfg = config.data
    if train_cfg is None or data_cfg is None or config.model is None:
        raise RuntimeError("data, model and train config sections are required for training")

    device = select_device()
    num_classes = config.model.num_classes
    config_snapshot = config.model_dump(by_alias=True)

    logger.info("Load data....", extra={"device": str(device)})
    train_iter, test_iter = build_iterators(data_cfg, base_dir)

    try:
        logger.info("Build model....")
        model = build_model(config).to(device)
        optimizer = create_optimizer(model, train_cfg)
        logger.info(
            "Model created",
            extra={"parameters": model.count_parameters(), "seed": config.global_config.seed},
        )

        logger.info("Train model....", extra={"epochs": train_cfg.epochs})
        listener = ScoreIterationListener(print_every=train_cfg.log_interval)

        iteration = 0
        last_score = float("nan")
        accuracy = 0.0
        checkpoint_path = ""

        for epoch in range(train_cfg.epochs):
            result = fit(
                model,
                optimizer,
                train_iter,
                listener=listener,
                iterations_per_batch=train_cfg.iterations,
                epoch=epoch,
                start_iteration=iteration,
                device=device,
            )
            iteration += result.iterations
            if result.iterations > 0:
                last_score = result.last_score
            logger.info(
                "Completed epoch",
                extra={"epoch": epoch, "iterations": result.iterations, "examples": result.examples},
            )

            logger.info("Evaluate model....", extra={"epoch": epoch})
            evaluation = evaluate(model, test_iter, num_classes, device=device)
            accuracy = evaluation.accuracy()
            logger.info(evaluation.stats(), extra={"epoch": epoch, "accuracy": round(accuracy, 4)})
            write_report(
                evaluation,
                experiment_dir / "eval" / f"epoch_{epoch:03d}",
                config_snapshot=config_snapshot,
                epoch=epoch,
            )
            test_iter.reset()

            metadata = CheckpointMetadata(
                epoch=epoch,
                iteration=iteration,
                seed=config.global_config.seed,
                config_snapshot=config_snapshot,
                score=last_score,
                accuracy=accuracy,
            )
            checkpoint_path = str(
                save_checkpoint(model, optimizer, metadata, checkpoint_dir_for(experiment_dir, epoch))
            )
    finally:
        train_iter.shutdown()
        test_iter.shutdown()

    logger.info(
        "Example finished",
        extra={
            "epochs": train_cfg.epochs,
            "iterations": iteration,
            "final_score": last_score,
            "accuracy": accuracy,
        },
    )

    return TrainingResult(
        epochs_completed=train_cfg.epochs,
        iterations=iteration,
        final_score=last_score,
        accuracy=accuracy,
        experiment_dir=str(experiment_dir),
        checkpoint_path=checkpoint_path,
    )


def evaluate_checkpoint(
    config: PresaveConfig,
    checkpoint_dir: Path,
    base_dir: Path,
) -> Evaluation:
    """
    Rebuild LeNet from a checkpoint and evaluate it on the test batches.

    Raises:
        RuntimeError: If the data or model config section is missing.
        FileNotFoundError: If the checkpoint or test directory is missing.
    """
    data_cfg = config.data
    if data_cfg is None or config.model is None:
        raise RuntimeError("data and model config sections are required for evaluation")

    device = select_device()
    model = build_model(config)
    metadata = load_checkpoint(checkpoint_dir, model, device=device, restore_rng=False)
    model = model.to(device)

    test_base = ExistingMiniBatchDataset(
        resolve_under(base_dir, data_cfg.test_directory), data_cfg.test_pattern
    )
    with AsyncBatchIterator(test_base, queue_size=data_cfg.prefetch_queue_size) as test_iter:
        evaluation = evaluate(model, test_iter, config.model.num_classes, device=device)

    logger.info(
        evaluation.stats(),
        extra={"epoch": metadata.epoch, "accuracy": round(evaluation.accuracy(), 4)},
    )
    return evaluation
