"""Name and label helpers shared by every source mapper."""
from __future__ import annotations

import re
from typing import Iterable


def normalize_name(name: str) -> str:
    """Lowercase, collapse whitespace and trim. The only dedupe key across sources."""
    return re.sub(r"\s+", " ", (name or "").lower()).strip()


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")


def ordinal(n: int) -> str:
    if 11 <= n % 100 <= 13:
        return f"{n}th"
    return f"{n}" + {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def standing_label(rank: int, total: int) -> str:
    return f"{ordinal(rank)} / {total}"


def is_org_team_name(name: str, aliases: Iterable[str] = ("KOI",)) -> bool:
    """Substring check on a display name or tag.

    Used only for sources without stable ids. Any name containing an alias
    is treated as the organization, so sponsor renames still match.
    """
    lowered = (name or "").lower()
    return any(a.lower() in lowered for a in aliases if a)


def names_match(a: str, b: str) -> bool:
    """Case-insensitive substring containment in either direction."""
    a, b = normalize_name(a), normalize_name(b)
    if not a or not b:
        return False
    return a in b or b in a
