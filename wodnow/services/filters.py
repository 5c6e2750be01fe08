"""
wodnow/services/filters.py — Query filter normalization for random workouts
The same FilterKey drives both the response cache key and the SQL predicate,
so equivalent inputs (reordered, duplicated, aliased) hit the same cache
entry and the same rows.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from wodnow.core.errors import ValidationError

# Literal spellings folded into one canonical equipment name.
EQUIPMENT_ALIASES = {
    "dumbbells": "dumbbell",
    "dumb bell": "dumbbell",
    "dumb bells": "dumbbell",
}

_UNDERSCORES = re.compile(r"_+")
_WHITESPACE = re.compile(r"\s+")
_INTEGER = re.compile(r"^[+-]?\d+$")

# Upper bound of the 32-bit time_cap_seconds column; larger caps match every row.
MAX_TIME_CAP_SECONDS = 2 ** 31 - 1


@dataclass(frozen=True)
class FilterKey:
    time_cap_max: Optional[int]
    equipment: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    @property
    def cache_eligible(self) -> bool:
        """Exclusion lists are per-session; caching them would never hit."""
        return not self.exclude

    @property
    def cache_key(self) -> str:
        return json.dumps(
            {
                "timeCapMax": self.time_cap_max,
                "equipment": list(self.equipment),
                "exclude": list(self.exclude),
            },
            separators=(",", ":"),
        )


def split_csv_values(raw_values: Optional[Iterable[str]]) -> list[str]:
    """Repeated params, each possibly comma-joined → trimmed non-empty tokens."""
    tokens: list[str] = []
    for raw in raw_values or ():
        for token in raw.split(","):
            token = token.strip()
            if token:
                tokens.append(token)
    return tokens


def normalize_equipment(value: str) -> str:
    normalized = value.strip().lower()
    normalized = _UNDERSCORES.sub(" ", normalized)
    normalized = _WHITESPACE.sub(" ", normalized).strip()
    return EQUIPMENT_ALIASES.get(normalized, normalized)


def parse_time_cap(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    text = raw.strip()
    if not _INTEGER.match(text) or int(text) <= 0:
        raise ValidationError("timeCapMax must be a positive integer")
    return min(int(text), MAX_TIME_CAP_SECONDS)


def normalize_filters(
    raw_time_cap_max: Optional[str],
    raw_equipment_values: Optional[Iterable[str]] = None,
    raw_exclude_values: Optional[Iterable[str]] = None,
) -> FilterKey:
    """Pure: parse, canonicalize, dedupe and sort. Raises ValidationError."""
    time_cap_max = parse_time_cap(raw_time_cap_max)
    equipment = {
        normalize_equipment(token)
        for token in split_csv_values(raw_equipment_values)
    }
    equipment.discard("")
    exclude = set(split_csv_values(raw_exclude_values))
    return FilterKey(
        time_cap_max=time_cap_max,
        equipment=tuple(sorted(equipment)),
        exclude=tuple(sorted(exclude)),
    )
