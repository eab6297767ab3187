# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
presave training package.

Subsystems:
  - optimizer: SGD + Nesterov factory with weight-only L2
  - listeners: score-per-iteration logging
  - checkpoint: atomic checkpoint save/load
  - engine: fit / evaluate / epoch loop, experiment directories
"""
