# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The static build matrix and the tag that triggers it.

Everything here is immutable configuration: a TriggerEvent fixed by the
pushed tag, and a list of PlatformEntry rows known before the run starts.
No entry is registered dynamically.
"""
