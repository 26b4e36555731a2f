# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
relmatrix: push a tag, get release binaries for every platform.

Fans a single release tag out over a static platform matrix, builds the
executable and the wheel for each entry, gives every executable a
collision-free name and publishes it to the tag's release.
"""

__version__ = "0.1.0"
