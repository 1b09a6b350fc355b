"""Embed classifier.

Assigns every declared embed entry exactly one inclusion mode. Rules are
tried in order and the first match wins:

1. explicit alias -> AliasDir / AliasFile
2. under the package prefix -> PrefixRelative
3. absolute, dot-prefixed or upward (``..``) path without alias -> skipped
   with a warning
4. anything else -> ExternalRelative
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path

from opam_wix.errors import NotFoundError
from opam_wix.models import (
    AliasDir,
    AliasFile,
    EmbedMode,
    EmbedSpec,
    ExternalRelative,
    PrefixRelative,
)

from .resolver import expand, has_parent_segment, is_relative_implicit, resolve

logger = logging.getLogger(__name__)

SEPARATORS = tuple({os.sep, "/"} | ({os.altsep} if os.altsep else set()))


class EmbedClassifier:
    """Classifies embed entries against a package prefix.

    Args:
        env: Variable mapping from the package session
        prefix: Package installation root (switch prefix)
        cwd: Base directory for relative paths, defaults to the current directory
    """

    def __init__(self, env: Mapping[str, str], prefix: Path, cwd: Path | None = None):
        self.env = env
        self.prefix = str(prefix)
        self.cwd = cwd or Path.cwd()

    def classify(self, spec: EmbedSpec) -> EmbedMode | None:
        """Classify one entry. Returns None for the designed skips."""
        path = expand(self.env, spec.source_path)

        if spec.alias is not None:
            source = resolve(self.env, spec.source_path, cwd=self.cwd)
            if source.is_dir():
                return AliasDir(source=source, dst_name=spec.alias)
            return AliasFile(source=source, dst_name=spec.alias)

        if self.under_prefix(path):
            if not Path(path).exists():
                raise NotFoundError(f"Couldn't find embedded {path} in switch prefix.")
            remainder = path[len(self.prefix):]
            if remainder.startswith(SEPARATORS):
                remainder = remainder[1:]
            if not remainder.strip():
                logger.warning(
                    "Specify a subdirectory of opam-prefix to include in your installation. "
                    "Skipping..."
                )
                return None
            if has_parent_segment(remainder):
                logger.warning(f"Path {path} goes up out of opam-prefix. Skipping...")
                return None
            return PrefixRelative(relative_path=remainder)

        if has_parent_segment(path):
            logger.warning(
                f'Path {path} contains "..". You should specify alias with absolute path. '
                "Skipping..."
            )
            return None

        if not is_relative_implicit(path):
            logger.warning(
                f'Path {path} is absolute or starts with ".." or ".". '
                "You should specify alias with absolute path. Skipping..."
            )
            return None

        if not (self.cwd / path).exists():
            raise NotFoundError(f"Couldn't find relative path to embed: {path}.")
        return ExternalRelative(relative_path=path)

    def under_prefix(self, path: str) -> bool:
        """Prefix match on whole path segments: ``/switch2`` is not under ``/switch``."""
        if not path.startswith(self.prefix):
            return False
        rest = path[len(self.prefix):]
        return not rest or rest.startswith(SEPARATORS) or self.prefix.endswith(SEPARATORS)

    def classify_all(self, specs: Iterable[EmbedSpec]) -> list[EmbedMode]:
        """Classify entries in declaration order, dropping skipped ones."""
        modes = []
        for spec in specs:
            mode = self.classify(spec)
            if mode is not None:
                logger.debug(f"Embed {spec.source_path!r} classified as {mode.kind}")
                modes.append(mode)
        return modes
