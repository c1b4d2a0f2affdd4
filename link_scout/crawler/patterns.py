# link_scout/crawler/patterns.py
"""
Glob-style matching of robots.txt path patterns.
"""
from __future__ import annotations

__all__ = ("matches_pattern",)


def matches_pattern(path: str, pattern: str) -> bool:
    """Return True if *path* matches the robots.txt *pattern*.

    ``*`` matches any run of characters and a trailing ``$`` requires the
    match to end exactly at the end of *path*. Sections between asterisks are
    searched left to right, first fit: once a section is found the scan never
    goes back to try a later position for it. The scan is not anchored at the
    start of *path*.

    >>> matches_pattern("/fish/salmon.html", "/fish*")
    True
    >>> matches_pattern("/x.php", "/*.php$")
    True
    >>> matches_pattern("/fish/salmon.htm", "/*.php$")
    False
    """
    anchored = pattern.endswith("$")
    if anchored:
        pattern = pattern[:-1]

    # trailing asterisks match anything anyway
    pattern = pattern.rstrip("*")
    if not pattern:
        return True

    sections = pattern.split("*")
    index = 0
    cursor = 0
    length = len(path)
    while cursor < length:
        section = sections[index]
        if not section:
            index += 1
            continue
        if path.startswith(section, cursor):
            index += 1
            cursor += len(section)
            if index == len(sections):
                return cursor == length if anchored else True
        else:
            cursor += 1
    return False
