# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Schema-level validation tests.

These focus on the pydantic models themselves: boundary values, constraint
enforcement, and the batch filename pattern rules.
"""

import pytest
from pydantic import ValidationError

from presave.config.schema import (
    DataConfig,
    DirectoryConfig,
    GlobalConfig,
    ModelConfig,
    PresaveConfig,
    PresaveStepConfig,
    TrainConfig,
)


class TestGlobalConfigSchema:
    def test_seed_must_be_non_negative(self) -> None:
        with pytest.raises(ValidationError):
            GlobalConfig(config_version="1.0.0", seed=-1)

    def test_default_seed_is_123(self) -> None:
        assert GlobalConfig(config_version="1.0.0").seed == 123

    def test_default_project_name(self) -> None:
        assert GlobalConfig(config_version="1.0.0").project_name == "presave"

    def test_config_version_is_required(self) -> None:
        with pytest.raises(ValidationError):
            GlobalConfig()  # type: ignore[call-arg]

    def test_log_level_is_normalised(self) -> None:
        assert GlobalConfig(config_version="1.0.0", log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GlobalConfig(config_version="1.0.0", log_level="LOUD")


class TestDirectoryConfigSchema:
    def test_unknown_field_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DirectoryConfig(data="data", secret_dir="hidden")  # type: ignore[call-arg]


class TestDataConfigSchema:
    def test_defaults_match_reference_layout(self) -> None:
        cfg = DataConfig(config_version="1.0.0")
        assert cfg.train_directory == "trainFolder"
        assert cfg.test_directory == "testFolder"
        assert cfg.train_pattern == "mnist-train-%d.bin"
        assert cfg.test_pattern == "mnist-test-%d.bin"

    @pytest.mark.parametrize(
        "pattern",
        ["", "batch.bin", "batch-%d-%d.bin", "batch-%s.bin", "sub/batch-%d.bin", "batch-%d-%x.bin"],
    )
    def test_malformed_patterns_are_rejected(self, pattern: str) -> None:
        with pytest.raises(ValidationError):
            DataConfig(config_version="1.0.0", train_pattern=pattern)

    def test_escaped_percent_is_allowed(self) -> None:
        cfg = DataConfig(config_version="1.0.0", test_pattern="100%%-%d.bin")
        assert cfg.test_pattern == "100%%-%d.bin"

    def test_queue_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            DataConfig(config_version="1.0.0", prefetch_queue_size=0)


class TestModelAndTrainSchemas:
    def test_model_defaults_are_lenet(self) -> None:
        cfg = ModelConfig(config_version="1.0.0")
        assert (cfg.conv1_filters, cfg.conv2_filters, cfg.dense_units) == (20, 50, 500)
        assert cfg.kernel_size == 5
        assert cfg.pool_size == 2

    def test_num_classes_needs_at_least_two(self) -> None:
        with pytest.raises(ValidationError):
            ModelConfig(config_version="1.0.0", num_classes=1)

    def test_momentum_must_be_below_one(self) -> None:
        with pytest.raises(ValidationError):
            TrainConfig(config_version="1.0.0", momentum=1.0)

    def test_learning_rate_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TrainConfig(config_version="1.0.0", learning_rate=0.0)

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PresaveStepConfig(config_version="1.0.0", batch_size=0)


class TestTopLevelConfig:
    def test_global_alias_is_used(self) -> None:
        config = PresaveConfig.model_validate({"global": {"config_version": "1.0.0"}})
        assert config.global_config.config_version == "1.0.0"

    def test_unknown_section_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PresaveConfig.model_validate(
                {"global": {"config_version": "1.0.0"}, "serving": {}}
            )
