"""Filename sanitizing for archive entries and artifact names."""

import re
from typing import Iterable, Optional

_ENTRY_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]")
_STEM_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_entry_name(filename: str) -> str:
    """Replace anything but letters, digits, dot, dash and underscore."""
    return _ENTRY_UNSAFE.sub("_", filename) or "file"


def sanitize_stem(value: str) -> str:
    """Like :func:`sanitize_entry_name` but dots are replaced too."""
    return _STEM_UNSAFE.sub("_", value)


def unique_name(name: str, taken: set[str]) -> str:
    """Return ``name`` or ``name_N.ext`` so it is not in ``taken``."""
    if name not in taken:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        stem, ext = name, ""
    counter = 1
    while True:
        candidate = f"{stem}_{counter}.{ext}" if ext else f"{stem}_{counter}"
        if candidate not in taken:
            return candidate
        counter += 1


def artifact_filename(parts: Iterable[Optional[str]], fallback: str) -> str:
    """Build ``<parts joined by _>.zip``, or ``<fallback>.zip`` if all parts are empty."""
    present = [p for p in parts if p]
    if present:
        base = sanitize_stem("_".join(present))
    else:
        base = fallback
    return f"{base}.zip"
