# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Experiment directory setup.

    experiments/<run_id>/
      ├── config.json      — frozen config snapshot
      ├── eval/            — one report directory per evaluated epoch
      └── checkpoints/     — epoch_NNN/ checkpoints

run_id format: YYYYMMDD_HHMMSS_<seed>. A second run started within the
same second gets a numeric suffix instead of reusing the directory.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from presave.config.schema import PresaveConfig
from presave.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)

_RUN_ID = re.compile(r"^(\d{8}_\d{6})_(\d+)(?:_(\d+))?$")


def create_experiment_dir(
    experiments_root: Path,
    config: PresaveConfig,
    seed: int,
) -> Path:
    """
    Create a new experiment directory with the standard layout.

    Args:
        experiments_root: Root directory for experiments.
        config: The full validated config, snapshotted into the directory.
        seed: The training seed, embedded in the run_id.

    Returns:
        Path to the created experiment directory.
    """
    timestamp = datetime.now(tz=timezone.utc).strftime("%Y%m%d_%H%M%S")
    run_id = f"{timestamp}_{seed}"
    experiment_dir = experiments_root / run_id
    suffix = 1
    while experiment_dir.exists():
        experiment_dir = experiments_root / f"{run_id}_{suffix}"
        suffix += 1

    experiment_dir.mkdir(parents=True)
    (experiment_dir / "checkpoints").mkdir()
    (experiment_dir / "eval").mkdir()

    config_snapshot = config.model_dump(by_alias=True)
    (experiment_dir / "config.json").write_text(
        json.dumps(config_snapshot, indent=2, default=str),
        encoding="utf-8",
    )

    logger.info(
        "Experiment directory created",
        extra={"run_id": experiment_dir.name, "path": str(experiment_dir)},
    )
    return experiment_dir


def find_experiment_dir(
    experiments_root: Path,
    run_id: str | None = None,
) -> Path | None:
    """
    Find an experiment directory by run_id, or return the most recent.

    "Most recent" orders by the run_id timestamp, then the collision suffix
    as a number, then directory mtime for different seeds started in the
    same second. Directories that don't look like run_ids are skipped.
    """
    if not experiments_root.is_dir():
        return None

    if run_id is not None:
        target = experiments_root / run_id
        return target if target.is_dir() else None

    candidates: list[tuple[tuple[str, int, int], Path]] = []
    for run_dir in experiments_root.iterdir():
        match = _RUN_ID.match(run_dir.name)
        if match is None or not run_dir.is_dir():
            continue
        timestamp, _seed, suffix = match.groups()
        candidates.append(((timestamp, int(suffix or 0), run_dir.stat().st_mtime_ns), run_dir))

    if not candidates:
        return None
    return max(candidates)[1]
