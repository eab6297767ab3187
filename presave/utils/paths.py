# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for presave.

Batch files are named by applying an integer index to a printf-style
pattern, e.g. "mnist-train-%d.bin" → "mnist-train-0.bin". The pattern must
hold exactly one %d; anything else can't be indexed unambiguously.
"""

from pathlib import Path

BATCH_INDEX_PLACEHOLDER = "%d"


def validate_batch_pattern(pattern: str) -> str:
    """
    Check that a batch filename pattern has exactly one %d and no other directives.

    A literal percent sign may be written as %%.

    Args:
        pattern: Filename pattern such as "mnist-train-%d.bin".

    Returns:
        The same pattern, for chaining.

    Raises:
        ValueError: If the pattern is empty, has no %d, several %d, a path
            separator, or any other % directive.
    """
    if not pattern:
        raise ValueError("Batch file pattern must not be empty")

    if "/" in pattern or "\\" in pattern:
        raise ValueError(
            f"Batch file pattern '{pattern}' must be a bare filename, not a path"
        )

    stripped = pattern.replace("%%", "")
    placeholders = stripped.count(BATCH_INDEX_PLACEHOLDER)
    if placeholders != 1:
        raise ValueError(
            f"Batch file pattern '{pattern}' must contain exactly one "
            f"'{BATCH_INDEX_PLACEHOLDER}', found {placeholders}"
        )

    if stripped.replace(BATCH_INDEX_PLACEHOLDER, "").count("%"):
        raise ValueError(
            f"Batch file pattern '{pattern}' contains a format directive other than "
            f"'{BATCH_INDEX_PLACEHOLDER}'"
        )

    return pattern


def format_batch_path(root_dir: Path, pattern: str, index: int) -> Path:
    """Return the path of batch number `index` under `root_dir`."""
    if index < 0:
        raise ValueError(f"Batch index must be >= 0, got {index}")
    return root_dir / (pattern % index)


def resolve_under(base_dir: Path, path: str) -> Path:
    """Resolve a config path against base_dir unless it is already absolute."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return base_dir / candidate


def ensure_directory(path: Path) -> Path:
    """
    Create a directory (and parents) if it doesn't exist. Returns the path for chaining.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
