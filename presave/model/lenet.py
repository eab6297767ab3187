# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
LeNet-style convolutional network for MNIST.

Topology (sizes from ModelConfig, defaults shown):
  Input rows (N, 784) → reshape (N, 1, 28, 28)
  → Conv 5×5 → 20 filters, identity activation
  → MaxPool 2×2 stride 2
  → Conv 5×5 → 50 filters, identity activation
  → MaxPool 2×2 stride 2
  → Dense 800 → 500, ReLU
  → Output 500 → 10, softmax (trained with negative log-likelihood)

The convolutions have no nonlinearity of their own; the only ones are the
max-pools and the dense ReLU.

The input arrives as flattened row vectors, the way batch files store it,
and forward() folds it back into images. The dense layer's input size is
derived from the geometry rather than hardcoded.
"""

import torch
import torch.nn as nn

from presave.config.schema import ModelConfig
from presave.model.init.weights import init_weights


class LeNetConfig:
    """
    Plain carrier for the network geometry.

    Validation happens in config/schema.py; this keeps torch modules free of
    pydantic.
    """

    __slots__ = (
        "n_channels", "height", "width", "num_classes", "conv1_filters",
        "conv2_filters", "kernel_size", "pool_size", "dense_units", "seed",
    )

    def __init__(
        self,
        n_channels: int = 1,
        height: int = 28,
        width: int = 28,
        num_classes: int = 10,
        conv1_filters: int = 20,
        conv2_filters: int = 50,
        kernel_size: int = 5,
        pool_size: int = 2,
        dense_units: int = 500,
        seed: int = 123,
    ) -> None:
        self.n_channels = n_channels
        self.height = height
        self.width = width
        self.num_classes = num_classes
        self.conv1_filters = conv1_filters
        self.conv2_filters = conv2_filters
        self.kernel_size = kernel_size
        self.pool_size = pool_size
        self.dense_units = dense_units
        self.seed = seed

    @classmethod
    def from_schema(cls, model_cfg: ModelConfig, seed: int) -> "LeNetConfig":
        return cls(
            n_channels=model_cfg.n_channels,
            height=model_cfg.height,
            width=model_cfg.width,
            num_classes=model_cfg.num_classes,
            conv1_filters=model_cfg.conv1_filters,
            conv2_filters=model_cfg.conv2_filters,
            kernel_size=model_cfg.kernel_size,
            pool_size=model_cfg.pool_size,
            dense_units=model_cfg.dense_units,
            seed=seed,
        )

    @property
    def input_size(self) -> int:
        return self.n_channels * self.height * self.width


def _conv_pool_extent(size: int, kernel_size: int, pool_size: int) -> int:
    # valid convolution, stride 1, then non-overlapping pooling
    return (size - kernel_size + 1) // pool_size


def compute_flat_size(config: LeNetConfig) -> int:
    """
    Number of features entering the dense layer.

    28×28 input with 5×5 kernels and 2×2 pools: 28→24→12→8→4, so 50*4*4 = 800.

    Raises:
        ValueError: If the geometry shrinks to nothing before the dense layer.
    """
    height, width = config.height, config.width
    for _ in range(2):
        height = _conv_pool_extent(height, config.kernel_size, config.pool_size)
        width = _conv_pool_extent(width, config.kernel_size, config.pool_size)
        if height <= 0 or width <= 0:
            raise ValueError(
                f"Input {config.height}x{config.width} is too small for two "
                f"{config.kernel_size}x{config.kernel_size} conv + "
                f"{config.pool_size}x{config.pool_size} pool stages"
            )
    return config.conv2_filters * height * width


class LeNet(nn.Module):
    """
    The fixed six-layer network.

    Args:
        config: LeNetConfig with the geometry and init seed.
    """

    def __init__(self, config: LeNetConfig) -> None:
        super().__init__()
        self.config = config
        flat_size = compute_flat_size(config)

        self.conv1 = nn.Conv2d(config.n_channels, config.conv1_filters, config.kernel_size, stride=1)
        self.pool1 = nn.MaxPool2d(config.pool_size, stride=config.pool_size)
        self.conv2 = nn.Conv2d(config.conv1_filters, config.conv2_filters, config.kernel_size, stride=1)
        self.pool2 = nn.MaxPool2d(config.pool_size, stride=config.pool_size)
        self.dense = nn.Linear(flat_size, config.dense_units)
        self.output_layer = nn.Linear(config.dense_units, config.num_classes)

        init_weights(self, seed=config.seed)

    def _to_images(self, x: torch.Tensor) -> torch.Tensor:
        cfg = self.config
        if x.dim() == 4:
            return x
        if x.dim() == 2 and x.shape[1] == cfg.input_size:
            return x.reshape(x.shape[0], cfg.n_channels, cfg.height, cfg.width)
        raise ValueError(
            f"Expected input of shape (N, {cfg.input_size}) or "
            f"(N, {cfg.n_channels}, {cfg.height}, {cfg.width}), got {tuple(x.shape)}"
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x: Flattened rows (N, C*H*W) or images (N, C, H, W).

        Returns:
            Logits of shape (N, num_classes). Softmax is applied by output()
            and folded into the loss during training.
        """
        h = self._to_images(x)
        h = self.pool1(self.conv1(h))
        h = self.pool2(self.conv2(h))
        h = torch.flatten(h, start_dim=1)
        h = torch.relu(self.dense(h))
        return self.output_layer(h)

    def output(self, x: torch.Tensor) -> torch.Tensor:
        """
        Class probabilities for inference.

        Runs in eval mode with gradients off, then restores the previous mode.
        """
        was_training = self.training
        self.eval()
        try:
            with torch.no_grad():
                return torch.softmax(self.forward(x), dim=-1)
        finally:
            self.train(was_training)

    def count_parameters(self) -> int:
        return sum(p.numel() for p in self.parameters() if p.requires_grad)
