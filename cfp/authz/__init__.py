"""Authorization layer for talks.

Every permission rule lives in `policy.py` as a pure function of the caller's role and
subject id plus the talk's owner and status. The talk authority only sequences
these decisions around storage calls.
"""
from __future__ import annotations
