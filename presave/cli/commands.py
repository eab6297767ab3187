# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the presave CLI.

Each function here corresponds to one subcommand and returns an exit code.
Library code raises; these handlers are where exceptions turn into exit
codes and structured error logs.

No print() calls. Everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path

from presave.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, VALIDATION_ERROR
from presave.config.exceptions import ConfigError
from presave.config.loader import load_config
from presave.config.schema import PresaveConfig
from presave.logging.logger import configure_logging, get_logger
from presave.runtime.bootstrap import bootstrap, set_deterministic_seed


def _base_dir() -> Path:
    """Relative paths in the config resolve against the working directory."""
    return Path.cwd()


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, PresaveConfig | None, logging.Logger]:
    """
    The shared setup every command needs: load config, run bootstrap.

    Returns a tuple of (exit_code, config, logger). If exit_code is not SUCCESS,
    the caller should return it immediately.
    """
    if args.log_level is not None:
        configure_logging(args.log_level)
    logger = get_logger(f"presave.cli.{command_name}")

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    if config is not None:
        global_cfg = config.global_config
        overrides: dict[str, object] = {}
        if args.seed is not None:
            overrides["seed"] = args.seed
        if args.log_level is not None:
            overrides["log_level"] = args.log_level
        if overrides:
            global_cfg = global_cfg.model_copy(update=overrides)
            config = config.model_copy(update={"global_config": global_cfg})
        bootstrap(global_cfg, base_dir=None if args.dry_run else _base_dir())
    else:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )
        if args.seed is not None:
            set_deterministic_seed(args.seed)

    return SUCCESS, config, logger


def handle_write(args: argparse.Namespace) -> int:
    """Convert raw MNIST IDX files into numbered batch files."""
    exit_code, config, logger = _load_and_bootstrap(args, "write")
    if exit_code != SUCCESS:
        return exit_code

    try:
        if config is None or config.presave is None or config.data is None:
            logger.error(
                "presave and data config sections are required",
                extra={"command": "write"},
            )
            return CONFIG_ERROR

        num_classes = config.model.num_classes if config.model is not None else 10

        if args.dry_run:
            logger.info(
                "Dry run: would write batches",
                extra={
                    "raw_directory": config.presave.raw_directory,
                    "train_directory": config.data.train_directory,
                    "test_directory": config.data.test_directory,
                    "batch_size": config.presave.batch_size,
                },
            )
            return SUCCESS

        from presave.data.mnist.writer import presave_mnist

        result = presave_mnist(
            config.presave,
            config.data,
            _base_dir(),
            num_classes=num_classes,
            seed=config.global_config.seed,
        )

        logger.info(
            "Pre-save complete",
            extra={
                "train_batches": result.train.batches,
                "train_examples": result.train.examples,
                "test_batches": result.test.batches,
                "test_examples": result.test.examples,
            },
        )
        return SUCCESS

    except FileNotFoundError as err:
        logger.error("Raw MNIST files missing", extra={"error": str(err)})
        return VALIDATION_ERROR
    except Exception as err:
        logger.error("Pre-save failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_train(args: argparse.Namespace) -> int:
    """Train LeNet on the pre-saved batches and evaluate after every epoch."""
    exit_code, config, logger = _load_and_bootstrap(args, "train")
    if exit_code != SUCCESS:
        return exit_code

    try:
        if config is None or config.data is None or config.model is None or config.train is None:
            logger.error(
                "data, model and train config sections are required",
                extra={"command": "train"},
            )
            return CONFIG_ERROR

        logger.info(
            "Starting training",
            extra={"command": "train", "dry_run": args.dry_run},
        )

        if args.dry_run:
            logger.info(
                "Dry run: would start training",
                extra={
                    "epochs": config.train.epochs,
                    "learning_rate": config.train.learning_rate,
                    "train_directory": config.data.train_directory,
                    "test_directory": config.data.test_directory,
                },
            )
            return SUCCESS

        from presave.training.engine.core import run_training
        from presave.training.engine.experiment import create_experiment_dir

        base_dir = _base_dir()
        experiments_root = base_dir / config.global_config.directories.experiments
        experiment_dir = create_experiment_dir(
            experiments_root, config, config.global_config.seed,
        )

        result = run_training(config, experiment_dir, base_dir)

        logger.info(
            "Training complete",
            extra={
                "epochs": result.epochs_completed,
                "iterations": result.iterations,
                "final_score": result.final_score,
                "accuracy": result.accuracy,
                "experiment_dir": result.experiment_dir,
            },
        )
        return SUCCESS

    except FileNotFoundError as err:
        logger.error("Batch directory missing; run `presave write` first", extra={"error": str(err)})
        return VALIDATION_ERROR
    except Exception as err:
        logger.error("Training failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_evaluate(args: argparse.Namespace) -> int:
    """Evaluate the latest checkpoint of an experiment on the test batches."""
    exit_code, config, logger = _load_and_bootstrap(args, "evaluate")
    if exit_code != SUCCESS:
        return exit_code

    try:
        if config is None or config.data is None or config.model is None:
            logger.error(
                "data and model config sections are required",
                extra={"command": "evaluate"},
            )
            return CONFIG_ERROR

        from presave.training.checkpoint.core import find_latest_checkpoint
        from presave.training.engine.experiment import find_experiment_dir

        base_dir = _base_dir()
        experiments_root = base_dir / config.global_config.directories.experiments
        experiment_dir = find_experiment_dir(experiments_root, args.run_id)
        if experiment_dir is None:
            logger.error(
                "No experiment found to evaluate",
                extra={"experiments_root": str(experiments_root), "run_id": args.run_id},
            )
            return VALIDATION_ERROR

        checkpoint_dir = find_latest_checkpoint(experiment_dir)
        if checkpoint_dir is None:
            logger.error(
                "No checkpoint found in experiment",
                extra={"experiment_dir": str(experiment_dir)},
            )
            return VALIDATION_ERROR

        if args.dry_run:
            logger.info("Dry run: would evaluate", extra={"checkpoint": str(checkpoint_dir)})
            return SUCCESS

        from presave.evaluation.reporting.writer import write_report
        from presave.training.engine.core import evaluate_checkpoint

        evaluation = evaluate_checkpoint(config, checkpoint_dir, base_dir)
        write_report(
            evaluation,
            experiment_dir / "eval" / f"{checkpoint_dir.name}_rerun",
            config_snapshot=config.model_dump(by_alias=True),
        )

        logger.info(
            "Evaluation complete",
            extra={
                "checkpoint": str(checkpoint_dir),
                "accuracy": evaluation.accuracy(),
                "f1": evaluation.f1(),
            },
        )
        return SUCCESS

    except FileNotFoundError as err:
        logger.error("Evaluation input missing", extra={"error": str(err)})
        return VALIDATION_ERROR
    except Exception as err:
        logger.error("Evaluation failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_info(args: argparse.Namespace) -> int:
    """Display environment and configuration information."""
    if args.log_level is not None:
        configure_logging(args.log_level)
    logger = get_logger("presave.cli.info")

    from presave import __version__
    from presave.runtime.environment import get_system_info

    system_info = get_system_info()

    logger.info(
        "System information",
        extra={
            "presave_version": __version__,
            "python_version": system_info.python_version,
            "torch_version": system_info.torch_version,
            "cuda_available": system_info.cuda_available,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "hostname": system_info.hostname,
            "config": args.config,
        },
    )
    return SUCCESS
