# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publication backends for relmatrix.

Where artifacts end up once an entry has built them: the shared package
pool, the tag's release (GitHub or a local directory), and the JSON run
report that records what every entry published.
"""
