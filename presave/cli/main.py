# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for presave.

Every operation is a subcommand of `presave`. The global options
(--config, --log-level, --dry-run, --seed) are inherited by every
subcommand through argparse's parent parser mechanism.

Usage:
    presave write --config configs/mnist.yaml
    presave train --config configs/mnist.yaml --seed 123
    presave evaluate --config configs/mnist.yaml --run-id 20261019_120000_123
    presave info
"""

import argparse
import sys

from presave.cli.commands import handle_evaluate, handle_info, handle_train, handle_write
from presave.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """Parent parser with the options every subcommand inherits."""
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level (overrides global.log_level).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Simulate the command without making changes.",
    )
    parent.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the random seed (takes precedence over config).",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register each subcommand with its handler via set_defaults(func=...)."""
    commands = [
        ("write", "Pre-save raw MNIST as numbered batch files.", handle_write),
        ("train", "Train LeNet on pre-saved batches and evaluate each epoch.", handle_train),
        ("evaluate", "Evaluate the latest checkpoint on the test batches.", handle_evaluate),
        ("info", "Display environment and config info.", handle_info),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    subparsers.choices["evaluate"].add_argument(
        "--run-id",
        type=str,
        default=None,
        dest="run_id",
        help="Experiment run ID to evaluate (defaults to the most recent).",
    )


def main() -> None:
    """
    Main CLI entrypoint. pyproject.toml's [project.scripts] points here.

    With no subcommand, print help and exit with USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="presave",
        description="presave — train LeNet on pre-saved MNIST mini-batches.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
