"""Path resolution for config-declared paths.

Paths may reference opam variables with the ``%{name}%`` or
``%{package:name}%`` syntax. Expansion is purely textual; nothing here
touches the file system.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

VARIABLE_RE = re.compile(r"%\{([^}%]+)\}%")


def expand(env: Mapping[str, str], text: str) -> str:
    """Expand ``%{var}%`` references against env.

    Unknown references are left untouched so they stay visible in
    diagnostics and in generated documents.
    """

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        value = env.get(name)
        if value is None:
            logger.debug(f"Unresolved variable reference: {match.group(0)}")
            return match.group(0)
        return value

    return VARIABLE_RE.sub(substitute, text)


def resolve(env: Mapping[str, str], raw_path: str, cwd: Path | None = None) -> Path:
    """Expand raw_path and make it absolute.

    A path still relative after expansion is joined to the current
    directory, with a warning.
    """
    expanded = expand(env, raw_path)
    path = Path(expanded)
    if path.is_absolute():
        return path
    logger.warning(
        f"Specified in config path {raw_path} is relative. Searching in current directory..."
    )
    return (cwd or Path.cwd()) / path


def is_relative_implicit(path: str) -> bool:
    """True for a relative path that does not start with ``.`` and never goes up with ``..``."""
    if Path(path).is_absolute():
        return False
    segments = re.split(r"[\\/]", path)
    return segments[0] != "." and not has_parent_segment(path)


def has_parent_segment(path: str) -> bool:
    """True if any segment of path is ``..``."""
    return ".." in re.split(r"[\\/]", path)
