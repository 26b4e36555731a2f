# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The per-entry release pipeline and the fan-out that runs it.

Each platform entry goes through five strictly sequential stages:

    provision -> build -> package -> collect -> publish

Entries run in parallel and share nothing but the append-only package pool
and the release they publish to. A failure stops its own entry and nothing
else.
"""
