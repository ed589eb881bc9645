"""
Tournament lobby name validation.

Tournament lobbies are named "<ABBR>: (<team or player>) vs (<team or player>)",
e.g. "OWC2024: (United States) vs (Germany)". Parentheses around the sides are
optional, "vs" may be written "vs." and matching is case-insensitive.
"""
from __future__ import annotations

import re
from typing import Optional

MAX_LOBBY_NAME_LENGTH = 256

LOBBY_NAME_RE = re.compile(
    r"""
    ^(?P<abbreviation>[^:()]{1,32}?)\s*:\s*   # tournament abbreviation
    (?P<red>\(.+?\)|[^()]+?)                  # first side
    \s+vs\.?\s+
    (?P<blue>\(.+?\)|[^()]+?)\s*$             # second side
    """,
    re.IGNORECASE | re.VERBOSE,
)


def parse_lobby_name(name: Optional[str]) -> Optional[tuple[str, str, str]]:
    """Return (abbreviation, red side, blue side), or None if the name is not a tournament lobby."""
    if not name or len(name) > MAX_LOBBY_NAME_LENGTH:
        return None
    m = LOBBY_NAME_RE.match(name.strip())
    if m is None:
        return None
    red = m.group("red").strip("() ")
    blue = m.group("blue").strip("() ")
    abbreviation = m.group("abbreviation").strip()
    if not (abbreviation and red and blue):
        return None
    return abbreviation, red, blue


def is_lobby_name_valid(name: Optional[str]) -> bool:
    return parse_lobby_name(name) is not None
