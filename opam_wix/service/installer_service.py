"""Installer service - orchestrates MSI generation for one package.

This service:
1. Opens a package session and finds the installed package
2. Picks the binary and the MSI version
3. Classifies and stages embeds in a temporary bundle
4. Builds the authoring model and runs the WiX toolchain

Data Flow:
    PackageState.session() → find_installed() → InstalledPackage
    EmbedClassifier.classify_all(config.embedded) → list[EmbedMode]
    Stager.stage(...) → StagedBundle (inside a TemporaryDirectory)
    AuthoringModelBuilder.build(bundle) → AuthoringModel
    ToolchainDriver.run(model) → <output_dir>/<binary>.msi
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel

from opam_wix.bundler.classifier import EmbedClassifier
from opam_wix.bundler.resolver import resolve
from opam_wix.bundler.stager import Stager
from opam_wix.bundler.version import select_version
from opam_wix.config import ConfigFile
from opam_wix.errors import BadArgumentsError, InstallerError, NotFoundError
from opam_wix.models import AuthoringModel, InstalledPackage, MsiVersion
from opam_wix.service.dependency_scanner import DependencyScanner
from opam_wix.service.package_state import PackageState
from opam_wix.wix.authoring import AuthoringModelBuilder
from opam_wix.wix.toolchain import ToolchainDriver, WixTools

logger = logging.getLogger(__name__)


class InstallerOptions(BaseModel):
    """Options for one run. Command-line values take precedence over the config file."""

    package: str
    binary_path: Path | None = None
    binary: str | None = None
    wix_version: MsiVersion | None = None
    output_dir: Path = Path(".")
    package_guid: str | None = None
    icon_file: Path | None = None
    dlg_bmp: Path | None = None
    ban_bmp: Path | None = None
    keep_wxs: bool = False


@dataclass
class InstallerResult:
    """Result of an installer run."""

    artifact: Path
    package: InstalledPackage
    binary: Path
    model: AuthoringModel


def merge_options(
    options: InstallerOptions, config: ConfigFile, env: Mapping[str, str], cwd: Path
) -> InstallerOptions:
    """Fill options unset on the command line from the config file.

    Config paths may reference opam variables and are resolved here.
    """

    def path(raw: str | None) -> Path | None:
        return resolve(env, raw, cwd=cwd) if raw is not None else None

    return options.model_copy(
        update={
            "binary": options.binary or config.binary,
            "wix_version": options.wix_version or config.wix_version,
            "binary_path": options.binary_path or path(config.binary_path),
            "icon_file": options.icon_file or path(config.images.ico),
            "dlg_bmp": options.dlg_bmp or path(config.images.dlg),
            "ban_bmp": options.ban_bmp or path(config.images.ban),
        }
    )


def installed_binary(package: InstalledPackage, name: str) -> Path:
    """Location of a package binary in the switch bin directory."""
    for candidate in (package.bin_dir / name, package.bin_dir / f"{name}.exe"):
        if candidate.is_file():
            return candidate
    raise NotFoundError(f"Binary {name} not found in opam installation")


def select_binary(package: InstalledPackage, binary_path: Path | None, binary: str | None) -> Path:
    """Pick the executable to install.

    Raises:
        BadArgumentsError: Both options given, or the path is not executable
        NotFoundError: Missing path or binary, or package without binaries
        InstallerError: Several binaries and none chosen
    """
    if binary_path is not None and binary is not None:
        raise BadArgumentsError("Options --binary-path and --binary can't be used together")
    if binary_path is not None:
        if not binary_path.is_file():
            raise NotFoundError(f"File not found at {binary_path}")
        if not os.access(binary_path, os.X_OK):
            raise BadArgumentsError(f"File {binary_path} is not executable")
        return binary_path
    if binary is not None:
        if binary not in package.binaries:
            raise NotFoundError(f"Binary {binary} not found in opam installation")
        return installed_binary(package, binary)
    match package.binaries:
        case [single]:
            return installed_binary(package, single)
        case []:
            raise NotFoundError(f"No binary file found at package installation {package.full_name}")
        case _:
            raise InstallerError(
                "opam-wix doesn't handle several binaries yet, choose one in the list "
                "and give it in argument with option '--binary'."
            )


class InstallerService:
    """Builds an MSI installer for an installed package.

    Args:
        package_state: Package-state collaborator
        dependency_scanner: Finds the DLLs the binary needs
        tools: WiX tool wrapper
        confirm: Yes/no prompt, used for the simplified version question
        cwd: Invocation directory; root of external embeds and kept documents
        tmp_root: Parent of the temporary working root, system default if None
    """

    def __init__(
        self,
        package_state: PackageState,
        dependency_scanner: DependencyScanner,
        tools: WixTools,
        confirm: Callable[[str], bool] = lambda question: False,
        cwd: Path | None = None,
        tmp_root: Path | None = None,
    ):
        self.package_state = package_state
        self.dependency_scanner = dependency_scanner
        self.tools = tools
        self.confirm = confirm
        self.cwd = cwd or Path.cwd()
        self.tmp_root = tmp_root

    def build(self, options: InstallerOptions, config: ConfigFile) -> InstallerResult:
        """Run the whole pipeline. The temporary root is removed on success and failure."""
        self.tools.check_available()
        with self.package_state.session() as session:
            options = merge_options(options, config, session.variables, self.cwd)
            package = session.find_installed(options.package)
            version = select_version(package.version, options.wix_version, self.confirm)
            logger.info(
                f"Package {package.full_name} found with binaries:\n"
                + "\n".join(f"  - {b}" for b in package.binaries)
            )
            binary = select_binary(package, options.binary_path, options.binary)
            logger.info(f"Path to the selected binary file : {binary}")

            classifier = EmbedClassifier(session.variables, session.prefix, cwd=self.cwd)
            modes = classifier.classify_all(config.embedded)

            logger.info("Creating installation bundle")
            with tempfile.TemporaryDirectory(prefix="opam-wix-", dir=self.tmp_root) as tmp:
                work_dir = Path(tmp)
                stager = Stager(work_dir / package.full_name, session.prefix, self.cwd)
                bundle = stager.stage(
                    binary,
                    self.dependency_scanner.get_dlls(binary),
                    modes,
                    icon=options.icon_file,
                    dialog_bmp=options.dlg_bmp,
                    banner_bmp=options.ban_bmp,
                )

                logger.info("WiX setup")
                builder = AuthoringModelBuilder(package, version, binary, options.package_guid)
                model = builder.build(bundle, config.envvar)
                driver = ToolchainDriver(self.tools, work_dir, bundle.bundle_dir)
                output_dir = options.output_dir if options.output_dir.is_absolute() else self.cwd / options.output_dir
                artifact = driver.run(model, output_dir, keep_wxs=options.keep_wxs, keep_dir=self.cwd)

        logger.info("Done.")
        return InstallerResult(artifact=artifact, package=package, binary=binary, model=model)
