# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
SGD optimizer factory for presave.

The network trains with plain stochastic gradient descent plus Nesterov
momentum. L2 regularization is expressed as SGD weight decay and applies to
weight tensors only: conv kernels and dense matrices (2D+) get the penalty,
bias vectors get none.
"""

import torch
import torch.nn as nn

from presave.config.schema import TrainConfig


def _separate_weight_decay_params(
    model: nn.Module,
    weight_decay: float,
) -> list[dict[str, object]]:
    """
    Split model parameters into decay and no-decay groups.

    Args:
        model: The model to extract parameters from.
        weight_decay: L2 coefficient for the decay group.

    Returns:
        List of parameter group dicts suitable for torch.optim.
    """
    decay_params: list[torch.Tensor] = []
    no_decay_params: list[torch.Tensor] = []

    for _, param in model.named_parameters():
        if not param.requires_grad:
            continue
        if param.dim() >= 2:
            decay_params.append(param)
        else:
            no_decay_params.append(param)

    return [
        {"params": decay_params, "weight_decay": weight_decay},
        {"params": no_decay_params, "weight_decay": 0.0},
    ]


def create_optimizer(
    model: nn.Module,
    train_config: TrainConfig,
) -> torch.optim.SGD:
    """
    Create an SGD optimizer with Nesterov momentum and per-group L2.

    Args:
        model: The model whose parameters to optimize.
        train_config: Validated training configuration.

    Returns:
        Configured SGD optimizer.
    """
    param_groups = _separate_weight_decay_params(model, train_config.l2)

    # torch rejects nesterov=True with zero momentum
    nesterov = train_config.nesterov and train_config.momentum > 0.0

    return torch.optim.SGD(
        param_groups,
        lr=train_config.learning_rate,
        momentum=train_config.momentum,
        nesterov=nesterov,
    )
