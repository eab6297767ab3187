# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Reader for the raw MNIST IDX files.

IDX is a tiny big-endian format:

    images: magic=2051, count, rows, cols, then count*rows*cols uint8 pixels
    labels: magic=2049, count, then count uint8 labels

The files are usually distributed gzipped; both forms are accepted.
"""

import gzip
import struct
from pathlib import Path

import torch

from presave.data.exceptions import BatchFormatError

IMAGES_MAGIC = 2051
LABELS_MAGIC = 2049


def resolve_idx_path(directory: Path, name: str) -> Path:
    """
    Find an IDX file by name, accepting a `.gz` sibling.

    Raises:
        FileNotFoundError: If neither the plain nor the gzipped file exists.
    """
    plain = directory / name
    if plain.is_file():
        return plain
    gzipped = directory / f"{name}.gz"
    if gzipped.is_file():
        return gzipped
    raise FileNotFoundError(f"MNIST file not found: {plain} (or {gzipped.name})")


def _read_bytes(path: Path) -> bytes:
    if path.suffix == ".gz":
        with gzip.open(path, "rb") as f:
            return f.read()
    return path.read_bytes()


def _check_header(data: bytes, path: Path, expected_magic: int, header_ints: int) -> tuple[int, ...]:
    header_size = 4 * header_ints
    if len(data) < header_size:
        raise BatchFormatError(f"{path}: file too short for an IDX header")
    header = struct.unpack(f">{header_ints}i", data[:header_size])
    if header[0] != expected_magic:
        raise BatchFormatError(
            f"{path}: bad magic number {header[0]}, expected {expected_magic}"
        )
    return header


def read_idx_images(path: Path) -> torch.Tensor:
    """
    Load an IDX image file as a uint8 tensor of shape (count, rows, cols).

    Raises:
        BatchFormatError: Bad magic number or truncated pixel data.
    """
    data = _read_bytes(path)
    _, count, rows, cols = _check_header(data, path, IMAGES_MAGIC, 4)

    expected = count * rows * cols
    payload = data[16 : 16 + expected]
    if len(payload) != expected:
        raise BatchFormatError(
            f"{path}: expected {expected} pixel bytes, found {len(payload)}"
        )
    if expected == 0:
        return torch.zeros((count, rows, cols), dtype=torch.uint8)

    return torch.frombuffer(bytearray(payload), dtype=torch.uint8).reshape(count, rows, cols)


def read_idx_labels(path: Path) -> torch.Tensor:
    """
    Load an IDX label file as an int64 tensor of shape (count,).

    Raises:
        BatchFormatError: Bad magic number or truncated label data.
    """
    data = _read_bytes(path)
    _, count = _check_header(data, path, LABELS_MAGIC, 2)

    payload = data[8 : 8 + count]
    if len(payload) != count:
        raise BatchFormatError(f"{path}: expected {count} labels, found {len(payload)}")
    if count == 0:
        return torch.zeros(0, dtype=torch.long)

    return torch.frombuffer(bytearray(payload), dtype=torch.uint8).to(torch.long)
