"""Parsing of FortiOS version strings."""

from __future__ import annotations

import re

_VERSION_RE = re.compile(r"v[ \t]*([+-]?\d+)\.[ \t]*([+-]?\d+)\.")


def parse_version(ver: str) -> tuple[int, int]:
    """Return ``(major, minor)`` from a version such as ``v6.4.4``.

    Raises ValueError when the string does not have that shape.
    """
    match = _VERSION_RE.match(ver)
    if match is None:
        raise ValueError(f"unparsable version {ver!r}")
    return int(match.group(1)), int(match.group(2))