# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Exceptions raised by the batch file and prefetching layers."""


class DataError(Exception):
    """Base for all data loading errors."""


class BatchFormatError(DataError):
    """A batch or IDX file exists but its contents can't be decoded."""


class UnsupportedOperationError(DataError):
    """The wrapped iterator doesn't support the requested operation (e.g. reset)."""
