"""Key pattern helpers.

Keys are conventionally colon-delimited namespace paths such as
``agent:planner:task1``. Patterns are globs where ``*`` is the only
metacharacter.
"""

from __future__ import annotations

import re
from functools import lru_cache

WILDCARD = "*"
NAMESPACE_SEPARATOR = ":"


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into a regex.

    Every ``*`` matches any run of characters (including none); all other
    characters are literal. Use ``fullmatch`` so the whole key must conform.
    """
    parts = (re.escape(part) for part in pattern.split(WILDCARD))
    return re.compile(".*".join(parts), re.DOTALL)


def matches(pattern: str, key: str) -> bool:
    """Check whether ``key`` matches the glob ``pattern`` end to end."""
    if pattern == WILDCARD:
        return True
    return compile_pattern(pattern).fullmatch(key) is not None


def namespace_of(key: str) -> str:
    """Return the namespace of a key: everything before the first colon."""
    return key.split(NAMESPACE_SEPARATOR, 1)[0]
