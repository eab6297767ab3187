# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for LeNet and its initialization.

Shape tests use the full 28x28 MNIST geometry; everything else uses a small
12x12 geometry to stay fast.
"""

import math

import pytest
import torch

from presave.config.schema import ModelConfig
from presave.model.init.weights import compute_fans, init_weights, xavier_std
from presave.model.lenet import LeNet, LeNetConfig, compute_flat_size


def _tiny_config(seed: int = 0) -> LeNetConfig:
    return LeNetConfig(
        height=12, width=12, num_classes=3, conv1_filters=4, conv2_filters=6,
        kernel_size=3, pool_size=2, dense_units=16, seed=seed,
    )


class TestGeometry:
    def test_mnist_flat_size_is_800(self) -> None:
        assert compute_flat_size(LeNetConfig()) == 800

    def test_tiny_flat_size(self) -> None:
        # 12 → 10 → 5 → 3 → 1
        assert compute_flat_size(_tiny_config()) == 6

    def test_too_small_input_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="too small"):
            compute_flat_size(LeNetConfig(height=8, width=8))

    def test_from_schema_copies_fields(self) -> None:
        cfg = LeNetConfig.from_schema(ModelConfig(config_version="1.0.0"), seed=123)
        assert cfg.input_size == 784
        assert cfg.seed == 123
        assert cfg.dense_units == 500


class TestMnistLeNet:
    def test_layer_shapes(self) -> None:
        model = LeNet(LeNetConfig())
        assert model.conv1.weight.shape == (20, 1, 5, 5)
        assert model.conv2.weight.shape == (50, 20, 5, 5)
        assert model.dense.weight.shape == (500, 800)
        assert model.output_layer.weight.shape == (10, 500)

    def test_flat_rows_give_logits_per_class(self) -> None:
        model = LeNet(LeNetConfig())
        logits = model(torch.rand(3, 784))
        assert logits.shape == (3, 10)

    def test_image_input_is_accepted(self) -> None:
        model = LeNet(LeNetConfig())
        assert model(torch.rand(2, 1, 28, 28)).shape == (2, 10)


class TestForward:
    def test_wrong_row_width_is_rejected(self) -> None:
        model = LeNet(_tiny_config())
        with pytest.raises(ValueError, match="Expected input"):
            model(torch.rand(2, 100))

    def test_output_rows_sum_to_one(self) -> None:
        model = LeNet(_tiny_config())
        probs = model.output(torch.rand(5, 144))
        assert probs.shape == (5, 3)
        assert torch.allclose(probs.sum(dim=1), torch.ones(5), atol=1e-6)
        assert not probs.requires_grad

    def test_output_restores_training_mode(self) -> None:
        model = LeNet(_tiny_config())
        model.train()
        model.output(torch.rand(1, 144))
        assert model.training

    def test_non_contiguous_rows_are_accepted(self) -> None:
        model = LeNet(_tiny_config())
        rows = torch.rand(144, 4).t()
        assert not rows.is_contiguous()
        assert model(rows).shape == (4, 3)

    def test_parameter_count(self) -> None:
        model = LeNet(_tiny_config())
        expected = (4 * 1 * 9 + 4) + (6 * 4 * 9 + 6) + (16 * 6 + 16) + (3 * 16 + 3)
        assert model.count_parameters() == expected


class TestInitialization:
    def test_same_seed_same_weights(self) -> None:
        a = LeNet(_tiny_config(seed=11))
        torch.rand(100)  # global RNG use must not matter
        b = LeNet(_tiny_config(seed=11))
        for pa, pb in zip(a.parameters(), b.parameters()):
            assert torch.equal(pa, pb)

    def test_different_seed_different_weights(self) -> None:
        a = LeNet(_tiny_config(seed=1))
        b = LeNet(_tiny_config(seed=2))
        assert not torch.equal(a.dense.weight, b.dense.weight)

    def test_biases_start_at_zero(self) -> None:
        model = LeNet(_tiny_config())
        for name, param in model.named_parameters():
            if name.endswith("bias"):
                assert torch.count_nonzero(param) == 0

    def test_conv_fans_include_receptive_field(self) -> None:
        assert compute_fans(torch.Size((50, 20, 5, 5))) == (500, 1250)

    def test_dense_fans(self) -> None:
        assert compute_fans(torch.Size((500, 800))) == (800, 500)

    def test_fans_need_two_dims(self) -> None:
        with pytest.raises(ValueError):
            compute_fans(torch.Size((10,)))

    def test_xavier_std(self) -> None:
        assert xavier_std(torch.Size((500, 800))) == pytest.approx(math.sqrt(2.0 / 1300))

    def test_init_weights_spread_matches_xavier(self) -> None:
        layer = torch.nn.Linear(800, 500)
        init_weights(layer, seed=3)
        assert layer.weight.std().item() == pytest.approx(xavier_std(layer.weight.shape), rel=0.05)
