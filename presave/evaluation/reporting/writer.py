# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Evaluation report writer.

One directory per evaluation pass:

    experiments/<run_id>/eval/epoch_000/
    ├── metrics.json          — machine-readable scores and confusion matrix
    ├── report.txt            — the stats() text plus a header
    └── config_snapshot.yaml  — the config used for this run

metrics.json is the authoritative output; report.txt is the same data for
humans.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import yaml

from presave.evaluation.metrics.engine import Evaluation
from presave.logging.logger import get_logger
from presave.utils.filesystem import atomic_write

logger = get_logger(__name__)


def write_report(
    evaluation: Evaluation,
    output_dir: Path,
    config_snapshot: dict[str, object] | None = None,
    epoch: int | None = None,
) -> Path:
    """
    Write metrics.json, report.txt and (optionally) config_snapshot.yaml.

    Returns:
        The output directory.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    metrics = evaluation.to_dict()
    if epoch is not None:
        metrics["epoch"] = epoch

    atomic_write(
        output_dir / "metrics.json",
        json.dumps(metrics, indent=2, sort_keys=True, default=str),
    )
    atomic_write(output_dir / "report.txt", format_report_text(evaluation, epoch))

    if config_snapshot is not None:
        atomic_write(
            output_dir / "config_snapshot.yaml",
            yaml.dump(config_snapshot, default_flow_style=False, sort_keys=True),
        )

    logger.info(
        "Evaluation report written",
        extra={"output_dir": str(output_dir), "accuracy": round(evaluation.accuracy(), 4)},
    )
    return output_dir


def format_report_text(evaluation: Evaluation, epoch: int | None = None) -> str:
    timestamp = datetime.now(tz=timezone.utc).isoformat()
    header = [
        "=" * 72,
        "PRESAVE EVALUATION REPORT",
        f"Generated: {timestamp}",
    ]
    if epoch is not None:
        header.append(f"Epoch: {epoch}")
    header.extend([f"Examples: {evaluation.num_examples}", "=" * 72, ""])
    return "\n".join(header) + evaluation.stats() + "\n"
