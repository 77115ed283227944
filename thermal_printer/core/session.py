"""
Session identifiers for print jobs.

Format: ``sess_<YYYYMMDD>_<HHMMSS>_<8 uppercase hex>``. The random suffix
comes from ``secrets`` so two ids minted in the same second collide only
with probability 2**-32.
"""

from __future__ import annotations

import re
import secrets
import time
from datetime import datetime
from typing import Optional

SESSION_ID_RE = re.compile(r"sess_[0-9]{8}_[0-9]{6}_[A-F0-9]{8}")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


class SessionIdGenerator:
    """Mint, validate and decode session ids."""

    def generate(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now()
        random_part = secrets.token_hex(4).upper()
        return f"sess_{now:%Y%m%d}_{now:%H%M%S}_{random_part}"

    def is_valid(self, session_id: object) -> bool:
        return isinstance(session_id, str) and SESSION_ID_RE.fullmatch(session_id) is not None

    def extract_creation_date(self, session_id: object) -> Optional[datetime]:
        """
        Decode the local date/time embedded in a session id.
        Returns None for malformed ids or impossible calendar values.
        """
        if not self.is_valid(session_id):
            return None
        _, date_part, time_part, _ = str(session_id).split("_")
        try:
            return datetime.strptime(date_part + time_part, "%Y%m%d%H%M%S")
        except ValueError:
            return None

    def generate_custom(self, prefix: str = "job") -> str:
        timestamp = _base36(int(time.time() * 1000))
        return f"{prefix}_{timestamp}_{secrets.token_hex(3)}"


__all__ = ["SESSION_ID_RE", "SessionIdGenerator"]
