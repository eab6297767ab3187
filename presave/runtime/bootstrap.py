# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for presave.

Every CLI command goes through this before doing real work:
  1. Validate the environment (Python version)
  2. Set deterministic seeds
  3. Point every presave logger at the configured level and log file
  4. Ensure the standard directories exist

After bootstrap the process is in a known, seeded state.
"""

import logging
import os
import random
from pathlib import Path

import torch

from presave.config.schema import GlobalConfig
from presave.logging.logger import configure_logging, get_logger
from presave.runtime.environment import check_minimum_python, get_system_info
from presave.utils.paths import ensure_directory

logger: logging.Logger = get_logger(__name__)


def set_deterministic_seed(seed: int) -> None:
    """
    Lock down all sources of randomness to the given seed.

    This sets:
      - Python's random module seed
      - PYTHONHASHSEED environment variable
      - PyTorch CPU and CUDA seeds
      - cuDNN deterministic mode (when CUDA is available)

    Args:
        seed: Integer seed value. Must be >= 0.
    """
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)

    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)
        torch.backends.cudnn.deterministic = True  # type: ignore[attr-defined]
        torch.backends.cudnn.benchmark = False  # type: ignore[attr-defined]


def _ensure_project_directories(base_dir: Path, config: GlobalConfig) -> None:
    dirs = config.directories
    ensure_directory(base_dir / dirs.data)
    ensure_directory(base_dir / dirs.logs)
    ensure_directory(base_dir / dirs.experiments)


def bootstrap(config: GlobalConfig, base_dir: Path | None = None) -> None:
    """
    Run the full bootstrap sequence.

    Args:
        config: The validated global configuration.
        base_dir: Directory that relative config paths resolve against.
            When None, directory creation is skipped.
    """
    check_minimum_python()
    set_deterministic_seed(config.seed)

    log_file = None
    if config.log_file is not None:
        log_file = Path(config.log_file)

    configure_logging(config.log_level, log_file=log_file)

    system_info = get_system_info()
    logger.info(
        "presave bootstrap complete",
        extra={
            "seed": config.seed,
            "python_version": system_info.python_version,
            "torch_version": system_info.torch_version,
            "cuda_available": system_info.cuda_available,
            "platform": system_info.platform,
        },
    )

    if base_dir is not None:
        _ensure_project_directories(base_dir, config)
