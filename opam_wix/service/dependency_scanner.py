"""Dependency scanner protocol.

Lists the shared libraries a binary needs at run time:
- CygcheckScanner: Production, parses ``cygcheck`` output
- MockDependencyScanner: Testing, returns seeded libraries
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from opam_wix.errors import NotFoundError, ToolchainFailure

logger = logging.getLogger(__name__)

SYSTEM_DIR_PREFIX = "c:\\windows\\"


class DependencyScanner(Protocol):
    """Protocol for finding a binary's DLL dependencies."""

    def get_dlls(self, binary: Path) -> list[Path]:
        """Return the libraries binary depends on, without duplicates, in discovery order."""
        ...


class MockDependencyScanner:
    """In-memory DependencyScanner for testing."""

    def __init__(self, dlls: dict[Path, list[Path]] | None = None) -> None:
        self._dlls = dict(dlls or {})

    def seed(self, binary: Path, dlls: list[Path]) -> None:
        self._dlls[binary] = dlls

    def get_dlls(self, binary: Path) -> list[Path]:
        return list(self._dlls.get(binary, []))


def parse_cygcheck(output: str) -> list[str]:
    """Extract non-system DLL paths from cygcheck's indented tree."""
    dlls: list[str] = []
    for line in output.splitlines():
        path = line.strip()
        if not path.lower().endswith(".dll"):
            continue
        if path.lower().startswith(SYSTEM_DIR_PREFIX):
            continue
        if path not in dlls:
            dlls.append(path)
    return dlls


class CygcheckScanner:
    """Runs ``cygcheck`` and converts the reported Windows paths with ``cygpath``."""

    def __init__(self, cygcheck: str = "cygcheck", cygpath: str = "cygpath"):
        self.cygcheck = cygcheck
        self.cygpath = cygpath

    def _run(self, cmd: list[str]) -> str:
        logger.debug(f"Command: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise NotFoundError(f"{cmd[0]} not found: {e}") from e
        if result.returncode != 0:
            raise ToolchainFailure(cmd[0], cmd, result.returncode, result.stderr)
        return result.stdout

    def get_dlls(self, binary: Path) -> list[Path]:
        windows_paths = parse_cygcheck(self._run([self.cygcheck, str(binary)]))
        dlls = [Path(self._run([self.cygpath, "-u", p]).strip()) for p in windows_paths]
        logger.info("Getting dlls:\n" + "\n".join(f"  - {dll}" for dll in dlls))
        return dlls
