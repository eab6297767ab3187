# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
presave evaluation package.

Subsystems:
  - metrics: confusion-matrix accuracy, precision, recall, F1
  - reporting: metrics.json / report.txt writer
"""
