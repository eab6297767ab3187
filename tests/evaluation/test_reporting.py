# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the evaluation report writer."""

import json
from pathlib import Path

import torch
import yaml

from presave.evaluation.metrics.engine import Evaluation
from presave.evaluation.reporting.writer import format_report_text, write_report


def _evaluation() -> Evaluation:
    evaluation = Evaluation(2)
    evaluation.eval(torch.tensor([0, 1, 1]), torch.tensor([[0.9, 0.1], [0.2, 0.8], [0.7, 0.3]]))
    return evaluation


class TestWriteReport:
    def test_writes_all_files(self, tmp_path: Path) -> None:
        out = write_report(_evaluation(), tmp_path / "eval" / "epoch_000", {"global": {"seed": 1}}, epoch=0)

        assert (out / "metrics.json").is_file()
        assert (out / "report.txt").is_file()
        assert yaml.safe_load((out / "config_snapshot.yaml").read_text()) == {"global": {"seed": 1}}

    def test_metrics_json_content(self, tmp_path: Path) -> None:
        out = write_report(_evaluation(), tmp_path, epoch=4)

        metrics = json.loads((out / "metrics.json").read_text(encoding="utf-8"))
        assert metrics["epoch"] == 4
        assert metrics["num_examples"] == 3
        assert metrics["accuracy"] == 2 / 3
        assert metrics["confusion_matrix"] == [[1, 0], [1, 1]]

    def test_snapshot_is_optional(self, tmp_path: Path) -> None:
        write_report(_evaluation(), tmp_path)
        assert not (tmp_path / "config_snapshot.yaml").exists()


class TestReportText:
    def test_contains_header_and_stats(self) -> None:
        text = format_report_text(_evaluation(), epoch=2)
        assert "PRESAVE EVALUATION REPORT" in text
        assert "Epoch: 2" in text
        assert "Examples: 3" in text
        assert "Accuracy:" in text
