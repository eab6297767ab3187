# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for atomic writes.

The target file either has the full new content or doesn't exist at all.
There should never be a partially written file, and no temp files left over.
"""

from pathlib import Path

from presave.utils.filesystem import atomic_write, atomic_write_bytes


class TestAtomicWrite:
    def test_writes_content_successfully(self, tmp_path: Path) -> None:
        target = tmp_path / "output.txt"
        atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "deep" / "output.txt"
        atomic_write(target, "nested content")
        assert target.read_text(encoding="utf-8") == "nested content"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "overwrite.txt"
        atomic_write(target, "first version")
        atomic_write(target, "second version")
        assert target.read_text(encoding="utf-8") == "second version"

    def test_no_leftover_temp_files_on_success(self, tmp_path: Path) -> None:
        atomic_write(tmp_path / "clean.txt", "clean write")
        assert list(tmp_path.glob(".presave_tmp_*")) == []


class TestAtomicWriteBytes:
    def test_writes_binary_content(self, tmp_path: Path) -> None:
        target = tmp_path / "binary.bin"
        data = b"\x00\x01\x02\xff"
        atomic_write_bytes(target, data)
        assert target.read_bytes() == data
