# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes.

RUNTIME_ERROR is also what a run returns when any entry failed, even if
other entries published. CI marks the whole run red, and the partial release
stays up for someone to finish by hand.
"""

SUCCESS: int = 0
USER_ERROR: int = 1
CONFIG_ERROR: int = 2
RUNTIME_ERROR: int = 3
VALIDATION_ERROR: int = 4
