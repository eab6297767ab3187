# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the checkpoint save/load system.

A checkpoint is written after every epoch; these cover the file layout,
weight/optimizer round trips, RNG restoration and latest-checkpoint lookup.
"""

import json
from pathlib import Path

import pytest
import torch
import torch.nn as nn

from presave.training.checkpoint.core import (
    CheckpointMetadata,
    checkpoint_dir_for,
    find_latest_checkpoint,
    load_checkpoint,
    save_checkpoint,
)


class _TinyModel(nn.Module):
    """Minimal model for checkpoint testing."""

    def __init__(self) -> None:
        super().__init__()
        self.linear = nn.Linear(8, 4)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.linear(x)


def _make_metadata(epoch: int = 0) -> CheckpointMetadata:
    return CheckpointMetadata(
        epoch=epoch,
        iteration=938,
        seed=123,
        config_snapshot={"model": {"num_classes": 4}},
        score=0.25,
        accuracy=0.97,
    )


def _sgd(model: nn.Module) -> torch.optim.SGD:
    return torch.optim.SGD(model.parameters(), lr=0.01, momentum=0.9, nesterov=True)


class TestCheckpointSaveLoad:
    def test_save_creates_files(self, tmp_path: Path) -> None:
        model = _TinyModel()
        ckpt_dir = checkpoint_dir_for(tmp_path, 0)

        save_checkpoint(model, _sgd(model), _make_metadata(), ckpt_dir)

        assert ckpt_dir == tmp_path / "checkpoints" / "epoch_000"
        for name in ("model.pt", "optimizer.pt", "rng_state.pt", "metadata.json"):
            assert (ckpt_dir / name).is_file()

    def test_metadata_content(self, tmp_path: Path) -> None:
        model = _TinyModel()
        ckpt_dir = checkpoint_dir_for(tmp_path, 3)

        save_checkpoint(model, _sgd(model), _make_metadata(epoch=3), ckpt_dir)

        meta = json.loads((ckpt_dir / "metadata.json").read_text())
        assert meta["epoch"] == 3
        assert meta["iteration"] == 938
        assert meta["seed"] == 123
        assert meta["accuracy"] == 0.97

    def test_roundtrip_weights_and_momentum(self, tmp_path: Path) -> None:
        torch.manual_seed(42)
        model = _TinyModel()
        optimizer = _sgd(model)
        model(torch.randn(2, 8)).sum().backward()
        optimizer.step()
        ckpt_dir = checkpoint_dir_for(tmp_path, 0)
        save_checkpoint(model, optimizer, _make_metadata(), ckpt_dir)

        torch.manual_seed(999)
        restored = _TinyModel()
        restored_opt = _sgd(restored)
        metadata = load_checkpoint(ckpt_dir, restored, restored_opt)

        for a, b in zip(model.parameters(), restored.parameters()):
            assert torch.equal(a, b)
        buffers = [s["momentum_buffer"] for s in restored_opt.state.values()]
        assert buffers and all(buf is not None for buf in buffers)
        assert metadata.epoch == 0
        assert metadata.score == 0.25

    def test_rng_state_is_restored(self, tmp_path: Path) -> None:
        model = _TinyModel()
        ckpt_dir = checkpoint_dir_for(tmp_path, 0)
        torch.manual_seed(5)
        save_checkpoint(model, _sgd(model), _make_metadata(), ckpt_dir)
        expected = torch.rand(3)

        torch.manual_seed(77)
        load_checkpoint(ckpt_dir, model)
        assert torch.equal(torch.rand(3), expected)

    def test_overwrites_existing_checkpoint(self, tmp_path: Path) -> None:
        model = _TinyModel()
        ckpt_dir = checkpoint_dir_for(tmp_path, 0)
        save_checkpoint(model, _sgd(model), _make_metadata(), ckpt_dir)
        save_checkpoint(model, _sgd(model), _make_metadata(), ckpt_dir)

        leftovers = list((tmp_path / "checkpoints").glob(".ckpt_tmp_*"))
        assert leftovers == []

    def test_missing_directory_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_checkpoint(tmp_path / "nope", _TinyModel())

    def test_missing_weights_raise(self, tmp_path: Path) -> None:
        (tmp_path / "epoch_000").mkdir()
        with pytest.raises(RuntimeError, match="model.pt"):
            load_checkpoint(tmp_path / "epoch_000", _TinyModel())


class TestFindLatestCheckpoint:
    def test_returns_highest_epoch(self, tmp_path: Path) -> None:
        for epoch in (0, 2, 10):
            checkpoint_dir_for(tmp_path, epoch).mkdir(parents=True)
        (tmp_path / "checkpoints" / "epoch_abc").mkdir()

        assert find_latest_checkpoint(tmp_path) == tmp_path / "checkpoints" / "epoch_010"

    def test_none_when_empty(self, tmp_path: Path) -> None:
        assert find_latest_checkpoint(tmp_path) is None
        (tmp_path / "checkpoints").mkdir()
        assert find_latest_checkpoint(tmp_path) is None
