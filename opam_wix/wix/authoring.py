"""Authoring model builder.

Collects package metadata, staged file lists, directory identifiers and
environment variables into the immutable AuthoringModel that the renderer
turns into the main document.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from opam_wix.bundler.identifiers import derive_all
from opam_wix.bundler.resolver import expand
from opam_wix.bundler.stager import StagedBundle
from opam_wix.models import (
    AuthoringModel,
    InstalledPackage,
    MsiVersion,
    PackageMetadata,
)

logger = logging.getLogger(__name__)

INSTALL_DIR_TOKEN = "[INSTALLDIR]"
DEFAULT_TAGS = ["ocaml"]


def installed_paths(bundle: StagedBundle) -> dict[str, str]:
    """Map each embedded top-level base name to its installed location."""
    return {entry.base_name: INSTALL_DIR_TOKEN + entry.base_name for entry in bundle.embedded}


def expand_environment(
    variables: Iterable[tuple[str, str]], paths: dict[str, str]
) -> list[tuple[str, str]]:
    """Expand ``%{base}%`` references in env var values. Unknown ones stay as-is."""
    return [(name, expand(paths, value)) for name, value in variables]


def build_description(package: InstalledPackage, binary: Path) -> str:
    """Synopsis, else description body, else a generated one-liner."""
    return (
        package.synopsis
        or package.description
        or f"Package {package.full_name} - binary {binary}"
    )


class AuthoringModelBuilder:
    """Builds the AuthoringModel for one run."""

    def __init__(
        self,
        package: InstalledPackage,
        version: MsiVersion,
        binary: Path,
        package_guid: str | None = None,
    ):
        self.package = package
        self.version = version
        self.binary = binary
        self.package_guid = package_guid

    def metadata(self) -> PackageMetadata:
        return PackageMetadata(
            name=self.package.name,
            version=self.version,
            description=build_description(self.package, self.binary),
            manufacturer=", ".join(self.package.maintainers),
            tags=list(self.package.tags) or list(DEFAULT_TAGS),
            package_guid=self.package_guid,
        )

    def build(
        self, bundle: StagedBundle, environment: Iterable[tuple[str, str]] = ()
    ) -> AuthoringModel:
        """Assemble the model from a staged bundle and configured env vars."""
        directories = derive_all(entry.base_name for entry in bundle.directories)
        env = expand_environment(environment, installed_paths(bundle))
        for name, value in env:
            logger.debug(f"Environment variable {name}={value}")
        return AuthoringModel(
            bundle_name=bundle.name,
            metadata=self.metadata(),
            executable=bundle.executable,
            dlls=bundle.dlls,
            embedded_files=[entry.base_name for entry in bundle.alias_files],
            directories=directories,
            images=bundle.images,
            environment=env,
        )
