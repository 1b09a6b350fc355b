"""Package-state protocol for read-only opam queries.

The protocol allows different implementations:
- OpamCliPackageState: Production, shells out to the opam binary
- MockPackageState: Testing, returns seeded packages

A session is a scoped handle: it is opened once at pipeline start and
passed explicitly to the resolver and classifier.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from opam_wix.errors import NotFoundError, ToolchainFailure
from opam_wix.models import InstalledPackage

logger = logging.getLogger(__name__)


class PackageSession(Protocol):
    """Read-only view of one opam switch."""

    prefix: Path
    variables: Mapping[str, str]

    def find_installed(self, name: str) -> InstalledPackage:
        """Return the installed package.

        Raises:
            NotFoundError: If the package is not installed
        """
        ...


class PackageState(Protocol):
    """Opens package sessions."""

    def session(self) -> AbstractContextManager[PackageSession]:
        ...


def not_installed(name: str) -> NotFoundError:
    return NotFoundError(
        f"Package {name} isn't found in your current switch. "
        f"Please, run opam install {name} and retry."
    )


@dataclass
class StaticSession:
    """Session over in-memory data."""

    prefix: Path
    variables: dict[str, str] = field(default_factory=dict)
    packages: dict[str, InstalledPackage] = field(default_factory=dict)

    def find_installed(self, name: str) -> InstalledPackage:
        if name not in self.packages:
            raise not_installed(name)
        return self.packages[name]


class MockPackageState:
    """In-memory PackageState for testing.

    Usage:
        state = MockPackageState(prefix=tmp_path / "switch")
        state.seed(InstalledPackage(name="foo", version="1.0", bin_dir=..., binaries=["foo"]))
        service = InstallerService(package_state=state, ...)
    """

    def __init__(self, prefix: Path, variables: dict[str, str] | None = None) -> None:
        self.prefix = prefix
        self.variables = {"prefix": str(prefix), **(variables or {})}
        self._packages: dict[str, InstalledPackage] = {}
        self.open_sessions = 0

    def seed(self, package: InstalledPackage) -> None:
        """Register an installed package."""
        self._packages[package.name] = package

    @contextmanager
    def session(self) -> Iterator[StaticSession]:
        self.open_sessions += 1
        try:
            yield StaticSession(prefix=self.prefix, variables=dict(self.variables), packages=self._packages)
        finally:
            self.open_sessions -= 1


# =============================================================================
# opam CLI implementation
# =============================================================================

OPAM_STRING_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')


def parse_opam_strings(value: str) -> list[str]:
    """Extract the string literals of an opam value (``"a"`` or ``["a" "b"]``)."""
    return [s.replace('\\"', '"').replace("\\\\", "\\") for s in OPAM_STRING_RE.findall(value)]


class OpamVariables(Mapping[str, str]):
    """Lazily queried opam variables, cached per session."""

    def __init__(self, opam: OpamCli, preloaded: dict[str, str]):
        self._opam = opam
        self._cache = dict(preloaded)

    def __getitem__(self, name: str) -> str:
        if name not in self._cache:
            result = self._opam.run(["var", "--safe", name], check=False)
            if result.returncode != 0:
                raise KeyError(name)
            self._cache[name] = result.stdout.strip()
        return self._cache[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cache)

    def __len__(self) -> int:
        return len(self._cache)


class OpamCli:
    """Runs opam subcommands in safe (read-only) mode."""

    def __init__(self, opam: str = "opam", switch: str | None = None):
        self.opam = opam
        self.switch = switch

    def run(self, args: list[str], check: bool = True) -> subprocess.CompletedProcess:
        cmd = [self.opam, *args]
        if self.switch:
            cmd += ["--switch", self.switch]
        logger.debug(f"Command: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise NotFoundError(f"opam not found: {e}") from e
        if check and result.returncode != 0:
            raise ToolchainFailure("opam", cmd, result.returncode, result.stderr)
        return result

    def global_variables(self) -> dict[str, str]:
        """Parse ``opam var`` listing: ``name  value  # comment``."""
        variables = {}
        for line in self.run(["var", "--safe"]).stdout.splitlines():
            line = line.split("#", 1)[0].strip()
            if not line or line.startswith("<"):
                continue
            parts = line.split(None, 1)
            if len(parts) == 2:
                variables[parts[0]] = parts[1].strip()
        return variables


@dataclass
class OpamSession:
    """Session backed by the opam command line."""

    cli: OpamCli
    prefix: Path
    variables: OpamVariables

    def field(self, name: str, field_name: str) -> list[str]:
        result = self.cli.run(["show", "--safe", "--normalise", f"--field={field_name}", name])
        return parse_opam_strings(result.stdout)

    def find_installed(self, name: str) -> InstalledPackage:
        version = self.variables.get(f"{name}:version")
        if not version or not self.variables.get(f"{name}:installed") == "true":
            raise not_installed(name)
        bin_dir = Path(self.variables["bin"])
        files = self.cli.run(["show", "--safe", "--list-files", name]).stdout.splitlines()
        binaries = [
            Path(f).name.removesuffix(".exe")
            for f in files
            if f.strip() and Path(f.strip()).parent == bin_dir
        ]
        synopsis = self.field(name, "synopsis")
        description = self.field(name, "description")
        return InstalledPackage(
            name=name,
            version=version,
            synopsis=synopsis[0] if synopsis else None,
            description=description[0] if description else None,
            maintainers=self.field(name, "maintainer"),
            tags=self.field(name, "tags"),
            binaries=binaries,
            bin_dir=bin_dir,
        )


class OpamCliPackageState:
    """PackageState backed by the opam command line."""

    def __init__(self, opam: str = "opam", switch: str | None = None):
        self.cli = OpamCli(opam=opam, switch=switch)

    @contextmanager
    def session(self) -> Iterator[OpamSession]:
        logger.info("Initialising opam")
        variables = OpamVariables(self.cli, self.cli.global_variables())
        try:
            prefix = Path(variables["prefix"])
        except KeyError as e:
            raise NotFoundError("opam did not report a switch prefix") from e
        try:
            yield OpamSession(cli=self.cli, prefix=prefix, variables=variables)
        finally:
            logger.debug("opam session closed")
