# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for presave.

Each config section gets its own frozen pydantic model:
  - frozen=True: immutable after construction
  - extra="forbid": unknown keys fail immediately
  - validate_default=True: defaults get type-checked too

The defaults reproduce the reference LeNet/MNIST run: seed 123, one epoch,
SGD with Nesterov momentum 0.9 at lr 0.01, L2 0.0005, batches read from
trainFolder/mnist-train-%d.bin and testFolder/mnist-test-%d.bin.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from presave.utils.paths import validate_batch_pattern


class DirectoryConfig(BaseModel):
    """Standard output directories, relative to the working directory."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    data: str = Field(default="data", description="Root directory for raw and pre-saved data")
    logs: str = Field(default="logs", description="System and debug logs")
    experiments: str = Field(default="experiments", description="Training run outputs")


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings that apply to every command: reproducibility (seed),
    observability (log_level, log_file), and project identity.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="presave", description="Human-readable project identifier"
    )
    seed: int = Field(
        default=123,
        ge=0,
        description="Global random seed propagated to all subsystems",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )
    directories: DirectoryConfig = Field(default_factory=DirectoryConfig)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(
                f"log_level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got '{value}'"
            )
        return upper


class DataConfig(BaseModel):
    """
    Where the pre-saved batch files live and how they are named.

    Each pattern must contain exactly one %d; the iterator substitutes
    0, 1, 2, ... to find the batches in order.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    train_directory: str = Field(
        default="trainFolder",
        description="Directory holding the pre-saved training batches",
    )
    test_directory: str = Field(
        default="testFolder",
        description="Directory holding the pre-saved test batches",
    )
    train_pattern: str = Field(
        default="mnist-train-%d.bin",
        description="Filename pattern for training batches",
    )
    test_pattern: str = Field(
        default="mnist-test-%d.bin",
        description="Filename pattern for test batches",
    )
    prefetch_queue_size: int = Field(
        default=8,
        ge=1,
        le=1024,
        description="How many batches the background loader may hold ahead of the consumer",
    )

    @field_validator("train_pattern", "test_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        return validate_batch_pattern(value)


class PresaveStepConfig(BaseModel):
    """
    Settings for `presave write`, which turns raw MNIST IDX files into batch files.
    Maps to the `presave:` section.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    raw_directory: str = Field(
        default="data/mnist",
        description="Directory holding the four MNIST IDX files (optionally .gz)",
    )
    train_images: str = Field(default="train-images-idx3-ubyte")
    train_labels: str = Field(default="train-labels-idx1-ubyte")
    test_images: str = Field(default="t10k-images-idx3-ubyte")
    test_labels: str = Field(default="t10k-labels-idx1-ubyte")
    batch_size: int = Field(
        default=64,
        ge=1,
        description="Examples per saved batch file",
    )
    shuffle_train: bool = Field(
        default=True,
        description="Shuffle the training split (seeded) before batching",
    )


class ModelConfig(BaseModel):
    """
    LeNet geometry. The layer sequence itself is fixed; these are its sizes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    n_channels: int = Field(default=1, ge=1, description="Input depth")
    height: int = Field(default=28, ge=1, description="Input image height")
    width: int = Field(default=28, ge=1, description="Input image width")
    num_classes: int = Field(default=10, ge=2, description="Number of possible outcomes")
    conv1_filters: int = Field(default=20, ge=1)
    conv2_filters: int = Field(default=50, ge=1)
    kernel_size: int = Field(default=5, ge=1)
    pool_size: int = Field(default=2, ge=1)
    dense_units: int = Field(default=500, ge=1)


class TrainConfig(BaseModel):
    """Training schedule and optimizer settings. Maps to the `train:` section."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    epochs: int = Field(default=1, ge=1, description="Number of passes over the training batches")
    iterations: int = Field(
        default=1,
        ge=1,
        description="Optimizer steps taken on each mini-batch",
    )
    learning_rate: float = Field(default=0.01, gt=0.0)
    momentum: float = Field(default=0.9, ge=0.0, lt=1.0)
    nesterov: bool = Field(default=True)
    l2: float = Field(
        default=0.0005,
        ge=0.0,
        description="L2 penalty on weight tensors (biases excluded)",
    )
    log_interval: int = Field(
        default=1,
        ge=1,
        description="Log the score every N iterations",
    )


class PresaveConfig(BaseModel):
    """
    Top-level config container. Only `global:` is required; commands check
    for the sections they need and fail with CONFIG_ERROR when one is missing.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    data: Optional[DataConfig] = Field(default=None)
    presave: Optional[PresaveStepConfig] = Field(default=None)
    model: Optional[ModelConfig] = Field(default=None)
    train: Optional[TrainConfig] = Field(default=None)
