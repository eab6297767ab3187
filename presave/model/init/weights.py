# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Deterministic Xavier initialization.

Weights are drawn from N(0, 2 / (fan_in + fan_out)) using a dedicated
torch.Generator, so the same seed gives the same network no matter what the
global RNG has been used for. Biases start at zero.

For a conv kernel of shape (out, in, kh, kw) the fans include the receptive
field: fan_in = in*kh*kw, fan_out = out*kh*kw.
"""

import math

import torch
import torch.nn as nn


def compute_fans(shape: torch.Size) -> tuple[int, int]:
    """Return (fan_in, fan_out) for a weight tensor of at least 2 dims."""
    if len(shape) < 2:
        raise ValueError(f"Fan computation needs a tensor with >= 2 dims, got shape {tuple(shape)}")
    receptive_field = 1
    for size in shape[2:]:
        receptive_field *= size
    fan_in = shape[1] * receptive_field
    fan_out = shape[0] * receptive_field
    return fan_in, fan_out


def xavier_std(shape: torch.Size) -> float:
    fan_in, fan_out = compute_fans(shape)
    return math.sqrt(2.0 / (fan_in + fan_out))


def init_weights(module: nn.Module, seed: int) -> None:
    """
    Initialize all parameters in a module deterministically.

    Args:
        module: The nn.Module to initialize.
        seed: Random seed for the Generator.

    Side effects:
        Modifies all parameter tensors in the module in-place.
    """
    generator = torch.Generator()
    generator.manual_seed(seed)

    with torch.no_grad():
        for _, param in module.named_parameters():
            if param.dim() >= 2:
                param.normal_(0.0, xavier_std(param.shape), generator=generator)
            else:
                param.zero_()
