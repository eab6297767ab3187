# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
presave model package.

A single fixed architecture: the LeNet-style CNN in lenet.py, initialized
deterministically (Xavier) from the global seed.
"""
