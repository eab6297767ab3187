# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
presave — train LeNet on MNIST mini-batches that were saved to disk ahead of time.

Loading a dataset from its raw format on every epoch makes the disk the
bottleneck. The pipeline here splits that into two steps:

  1. `presave write` converts the raw MNIST IDX files into numbered batch
     files once (mnist-train-0.bin, mnist-train-1.bin, ...).
  2. `presave train` streams those files back through a background
     prefetching iterator while the model trains.
"""

__version__ = "0.1.0"
