"""Container names derived from file layout.

Under a primary source directory, ``lib/my_app/accounts/user.ex`` maps to
``MyApp.Accounts.User``. Paths outside that layout get a caller-supplied
default.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePosixPath


def camelize(segment: str) -> str:
    """``company_live`` -> ``CompanyLive``."""
    return "".join(word[:1].upper() + word[1:] for word in segment.split("_"))


def container_from_path(
    path: str,
    source_dirs: Sequence[str] = ("lib",),
    extensions: Sequence[str] = (".ex",),
    default: str = "Unknown",
) -> str:
    """Derive a dotted container name from a file path.

    The path must contain a source directory followed by at least one
    directory and a file with one of ``extensions``. Secondary suffixes of
    the file name (``index.html.heex``) are dropped.
    """
    parts = PurePosixPath(path.replace("\\", "/")).parts
    name = parts[-1] if parts else ""
    if not any(name.endswith(ext) for ext in extensions):
        return default

    for i, part in enumerate(parts):
        if part in source_dirs and len(parts) - i >= 3:
            segments = list(parts[i + 1 : -1])
            stem = name.split(".", 1)[0]
            if not stem:
                return default
            segments.append(stem)
            return ".".join(camelize(s) for s in segments)
    return default
