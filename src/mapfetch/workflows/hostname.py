"""Hostname canonicalization against numeric-encoding bypasses.

`0x7f.0.0.1`, `0177.0.0.1` and `2130706433` all name the loopback host; the
classifier only ever sees the dotted-decimal form produced here.
"""

from __future__ import annotations

import re
from typing import List, Optional

_HEX_RE = re.compile(r"^0x([0-9a-f]+)$")
_OCT_RE = re.compile(r"^0[0-7]+$")
_DEC_RE = re.compile(r"^[0-9]+$")

_MAX_IPV4 = 0xFFFFFFFF


def _parse_component(part: str) -> Optional[int]:
    """Parse one dot-separated component as hex, octal or decimal."""
    match = _HEX_RE.match(part)
    if match:
        return int(match.group(1), 16)
    # Leading zero without 8/9 means octal; "08" and "09" fall through to decimal.
    if len(part) > 1 and _OCT_RE.match(part):
        return int(part, 8)
    if _DEC_RE.match(part):
        return int(part, 10)
    return None


def normalize_hostname(hostname: str) -> str:
    """Return the canonical lowercase form of `hostname`.

    - Enclosing brackets are removed, nested pairs and inner padding included.
    - A single numeric component is a 32-bit address and expands to four octets.
    - Two to four numeric components are joined verbatim as decimal; `127.1`
      stays `127.1`.
    - Anything else comes back lowercased and trimmed.
    """
    h = (hostname or "").strip().lower()

    while h.startswith("[") and h.endswith("]"):
        h = h[1:-1].strip()

    parts = h.split(".")
    if not 1 <= len(parts) <= 4:
        return h

    nums: List[int] = []
    for part in parts:
        value = _parse_component(part)
        if value is None:
            return h
        nums.append(value)

    if len(nums) == 1:
        n = nums[0]
        if n > _MAX_IPV4:
            return h
        return ".".join(str((n >> shift) & 255) for shift in (24, 16, 8, 0))

    if any(n > 255 for n in nums):
        return h
    return ".".join(str(n) for n in nums)
