# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Atomic checkpoint save/load.

A checkpoint is written after every epoch and holds:
  - model weights
  - optimizer state (momentum buffers)
  - RNG state (Python, torch)
  - metadata.json: epoch, iteration, seed, score, accuracy, config snapshot

Saves go to a temp directory that is renamed into place, so a crash never
leaves a half-written checkpoint behind. Directories are named epoch_NNN.
"""

import json
import logging
import os
import random
import shutil
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path

import torch
import torch.nn as nn

from presave.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)

CHECKPOINT_PREFIX = "epoch_"


@dataclass(frozen=True)
class CheckpointMetadata:
    """Metadata stored alongside the checkpoint for tracing."""

    epoch: int
    iteration: int
    seed: int
    config_snapshot: dict[str, object]
    score: float
    accuracy: float | None = None


def checkpoint_dir_for(experiment_dir: Path, epoch: int) -> Path:
    return experiment_dir / "checkpoints" / f"{CHECKPOINT_PREFIX}{epoch:03d}"


def save_checkpoint(
    model: nn.Module,
    optimizer: torch.optim.Optimizer,
    metadata: CheckpointMetadata,
    checkpoint_dir: Path,
) -> Path:
    """
    Save a checkpoint atomically.

    Args:
        model: The model to checkpoint.
        optimizer: The optimizer to checkpoint.
        metadata: Epoch, iteration, seed, config snapshot, score.
        checkpoint_dir: Final directory for this checkpoint (e.g. epoch_000/).

    Returns:
        Path to the saved checkpoint directory.
    """
    parent = checkpoint_dir.parent
    parent.mkdir(parents=True, exist_ok=True)

    tmp_dir = Path(tempfile.mkdtemp(dir=parent, prefix=".ckpt_tmp_"))
    try:
        torch.save(model.state_dict(), tmp_dir / "model.pt")
        torch.save(optimizer.state_dict(), tmp_dir / "optimizer.pt")

        rng_state = {
            "python": random.getstate(),
            "torch_cpu": torch.random.get_rng_state(),
            "torch_hash_seed": os.environ.get("PYTHONHASHSEED", ""),
        }
        if torch.cuda.is_available():
            rng_state["torch_cuda"] = torch.cuda.get_rng_state_all()
        torch.save(rng_state, tmp_dir / "rng_state.pt")

        (tmp_dir / "metadata.json").write_text(
            json.dumps(asdict(metadata), indent=2, default=str),
            encoding="utf-8",
        )

        if checkpoint_dir.exists():
            shutil.rmtree(checkpoint_dir)
        tmp_dir.rename(checkpoint_dir)

        logger.info(
            "Checkpoint saved",
            extra={
                "epoch": metadata.epoch,
                "iteration": metadata.iteration,
                "path": str(checkpoint_dir),
                "score": metadata.score,
            },
        )
        return checkpoint_dir

    except Exception:
        if tmp_dir.exists():
            shutil.rmtree(tmp_dir)
        raise


def load_checkpoint(
    checkpoint_dir: Path,
    model: nn.Module,
    optimizer: torch.optim.Optimizer | None = None,
    device: torch.device | None = None,
    restore_rng: bool = True,
) -> CheckpointMetadata:
    """
    Load a checkpoint and restore model/optimizer/RNG state.

    Raises:
        FileNotFoundError: If checkpoint_dir doesn't exist.
        RuntimeError: If model.pt or metadata.json is missing.
    """
    if not checkpoint_dir.is_dir():
        raise FileNotFoundError(f"Checkpoint directory not found: {checkpoint_dir}")

    map_location = device if device is not None else "cpu"

    model_path = checkpoint_dir / "model.pt"
    if not model_path.is_file():
        raise RuntimeError(f"model.pt not found in {checkpoint_dir}")
    model.load_state_dict(torch.load(model_path, map_location=map_location, weights_only=True))

    if optimizer is not None:
        opt_path = checkpoint_dir / "optimizer.pt"
        if opt_path.is_file():
            optimizer.load_state_dict(torch.load(opt_path, map_location=map_location, weights_only=True))

    rng_path = checkpoint_dir / "rng_state.pt"
    if restore_rng and rng_path.is_file():
        rng_state = torch.load(rng_path, map_location="cpu", weights_only=False)
        random.setstate(rng_state["python"])
        torch.random.set_rng_state(rng_state["torch_cpu"])
        if rng_state.get("torch_hash_seed"):
            os.environ["PYTHONHASHSEED"] = rng_state["torch_hash_seed"]
        if torch.cuda.is_available() and "torch_cuda" in rng_state:
            torch.cuda.set_rng_state_all(rng_state["torch_cuda"])

    meta_path = checkpoint_dir / "metadata.json"
    if not meta_path.is_file():
        raise RuntimeError(f"metadata.json not found in {checkpoint_dir}")

    meta_dict = json.loads(meta_path.read_text(encoding="utf-8"))
    metadata = CheckpointMetadata(
        epoch=meta_dict["epoch"],
        iteration=meta_dict.get("iteration", 0),
        seed=meta_dict["seed"],
        config_snapshot=meta_dict.get("config_snapshot", {}),
        score=meta_dict.get("score", 0.0),
        accuracy=meta_dict.get("accuracy"),
    )

    logger.info(
        "Checkpoint loaded",
        extra={"epoch": metadata.epoch, "path": str(checkpoint_dir)},
    )
    return metadata


def find_latest_checkpoint(experiment_dir: Path) -> Path | None:
    """
    Return the epoch_NNN checkpoint with the highest epoch, or None.
    """
    checkpoints_dir = experiment_dir / "checkpoints"
    if not checkpoints_dir.is_dir():
        return None

    ckpt_dirs = sorted(
        (
            d
            for d in checkpoints_dir.iterdir()
            if d.is_dir()
            and d.name.startswith(CHECKPOINT_PREFIX)
            and d.name[len(CHECKPOINT_PREFIX):].isdigit()
        ),
        key=lambda d: int(d.name[len(CHECKPOINT_PREFIX):]),
    )

    if not ckpt_dirs:
        return None

    return ckpt_dirs[-1]
