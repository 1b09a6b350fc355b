"""Bundle stager.

Materializes the installation tree in a temporary bundle directory:

    <bundle>/
        opam/           prefix-relative embeds, sub-path preserved
        external/       external-relative embeds, sub-path preserved
        <alias>         aliased files and directories
        <binary>.exe    main executable
        *.dll           dependency libraries, flat
        logo.ico, dlgbmp.bmp, bannrbmp.bmp
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from opam_wix import data
from opam_wix.errors import ConfigurationError, NotFoundError
from opam_wix.models import (
    AliasDir,
    AliasFile,
    EmbedMode,
    ExternalRelative,
    ImageFiles,
    PrefixRelative,
    StagedEntry,
)

logger = logging.getLogger(__name__)

OPAM_DIR = "opam"
EXTERNAL_DIR = "external"

SEGMENT_SEPARATOR_RE = re.compile(r"[\\/]+")


@dataclass
class StagedBundle:
    """Summary of what the stager put in the bundle."""

    bundle_dir: Path
    executable: str
    dlls: list[str] = field(default_factory=list)
    images: ImageFiles = field(default_factory=ImageFiles)
    alias_dirs: list[StagedEntry] = field(default_factory=list)
    alias_files: list[StagedEntry] = field(default_factory=list)
    containers: list[StagedEntry] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.bundle_dir.name

    @property
    def directories(self) -> list[StagedEntry]:
        """Top-level directories to harvest: alias dirs, then non-empty containers."""
        return self.alias_dirs + self.containers

    @property
    def embedded(self) -> list[StagedEntry]:
        """Every embedded top-level entry (directories and files)."""
        return self.alias_dirs + self.alias_files + self.containers


def with_exe_suffix(name: str) -> str:
    """Force a ``.exe`` extension on a binary name."""
    return name if name.endswith(".exe") else f"{name}.exe"


class Stager:
    """Copies the executable, libraries, images and embeds into a bundle.

    Args:
        bundle_dir: Bundle directory, created if missing
        prefix_root: Package prefix, root of prefix-relative embeds
        external_root: Root of external-relative embeds (usually the current directory)
    """

    def __init__(self, bundle_dir: Path, prefix_root: Path, external_root: Path):
        self.bundle_dir = bundle_dir
        self.prefix_root = prefix_root
        self.external_root = external_root
        self.opam_dir = bundle_dir / OPAM_DIR
        self.external_dir = bundle_dir / EXTERNAL_DIR
        self._top_level: dict[str, str] = {}

    def prepare(self) -> None:
        """Create the bundle directory and both container directories."""
        self.bundle_dir.mkdir(parents=True, exist_ok=True)
        self.opam_dir.mkdir(exist_ok=True)
        self.external_dir.mkdir(exist_ok=True)
        self._top_level = {OPAM_DIR: OPAM_DIR, EXTERNAL_DIR: EXTERNAL_DIR}

    def stage(
        self,
        binary: Path,
        dlls: Iterable[Path],
        modes: Iterable[EmbedMode],
        icon: Path | None = None,
        dialog_bmp: Path | None = None,
        banner_bmp: Path | None = None,
    ) -> StagedBundle:
        """Stage everything and return the bundle summary."""
        self.prepare()
        bundle = StagedBundle(
            bundle_dir=self.bundle_dir,
            executable=self.stage_executable(binary),
            dlls=self.stage_dlls(dlls),
            images=ImageFiles(
                icon=self.stage_image(icon, data.LOGO),
                dialog_bmp=self.stage_image(dialog_bmp, data.DIALOG_BMP),
                banner_bmp=self.stage_image(banner_bmp, data.BANNER_BMP),
            ),
        )
        for mode in modes:
            entry = self.stage_embedded(mode)
            if entry is None:
                continue
            if entry.is_directory:
                bundle.alias_dirs.append(entry)
            else:
                bundle.alias_files.append(entry)
        bundle.containers = self.containers()
        logger.info("Bundle created.")
        return bundle

    def stage_executable(self, binary: Path) -> str:
        """Copy the main binary as <name>.exe. Returns the staged base name."""
        if not binary.is_file():
            raise NotFoundError(f"File not found at {binary}")
        exe_name = with_exe_suffix(binary.name)
        shutil.copy2(binary, self.claim(exe_name))
        return exe_name

    def stage_dlls(self, dlls: Iterable[Path]) -> list[str]:
        """Flat-copy dependency libraries into the bundle root."""
        staged: dict[str, Path] = {}
        for dll in dlls:
            if not dll.is_file():
                raise NotFoundError(f"Couldn't find library {dll}.")
            if staged.get(dll.name) == dll:
                continue
            shutil.copy2(dll, self.claim(dll.name))
            staged[dll.name] = dll
        return list(staged)

    def stage_image(self, override: Path | None, default: tuple[str, str]) -> str:
        """Copy a user image, or write the built-in one. Returns the staged base name."""
        if override is not None:
            if not override.is_file():
                raise NotFoundError(f"Couldn't find image {override}.")
            shutil.copy2(override, self.claim(override.name))
            return override.name
        name, resource = default
        self.claim(name).write_bytes(data.read(resource))
        return name

    def stage_embedded(self, mode: EmbedMode) -> StagedEntry | None:
        """Copy one classified embed. Returns the new top-level entry, if any."""
        match mode:
            case AliasDir(source=source, dst_name=dst_name):
                return self._copy_alias(source, dst_name, is_directory=True)
            case AliasFile(source=source, dst_name=dst_name):
                return self._copy_alias(source, dst_name, is_directory=False)
            case PrefixRelative(relative_path=relative_path):
                self._copy_include(relative_path, self.prefix_root, self.opam_dir)
                return None
            case ExternalRelative(relative_path=relative_path):
                self._copy_include(relative_path, self.external_root, self.external_dir)
                return None

    def claim(self, name: str) -> Path:
        """Reserve a top-level bundle name and return its path.

        Names are compared case-insensitively, as on the target file system.
        """
        key = name.lower()
        if key in self._top_level or (self.bundle_dir / name).exists():
            existing = self._top_level.get(key, name)
            raise ConfigurationError(
                f"Bundle entry {name!r} collides with existing entry {existing!r}. "
                "Top-level names must be unique, ignoring case."
            )
        self._top_level[key] = name
        return self.bundle_dir / name

    def containers(self) -> list[StagedEntry]:
        """Container directories that received at least one entry."""
        return [
            StagedEntry(base_name=path.name, is_directory=True, bundle_relative_path=Path(path.name))
            for path in (self.opam_dir, self.external_dir)
            if any(path.iterdir())
        ]

    def _copy_alias(self, source: Path, dst_name: str, is_directory: bool) -> StagedEntry:
        kind = "directory" if is_directory else "file"
        exists = source.is_dir() if is_directory else source.is_file()
        if not exists:
            raise NotFoundError(f"Couldn't find {kind} {source}.")
        dst = self.claim(dst_name)
        if is_directory:
            shutil.copytree(source, dst)
        else:
            shutil.copy2(source, dst)
        logger.debug(f"Staged {kind} {source} as {dst_name}")
        return StagedEntry(base_name=dst_name, is_directory=is_directory, bundle_relative_path=Path(dst_name))

    def _copy_include(self, relative_path: str, src_root: Path, dst_root: Path) -> None:
        """Copy src_root/relative_path to dst_root/relative_path, one segment at a time."""
        segments = [s for s in SEGMENT_SEPARATOR_RE.split(relative_path) if s]
        if not segments:
            raise ConfigurationError(f"Empty embedded path {relative_path!r}.")
        if ".." in segments:
            raise ConfigurationError(
                f"Embedded path {relative_path!r} leaves its container directory."
            )
        src, dst = src_root, dst_root
        for segment in segments[:-1]:
            src = src / segment
            dst = dst / segment
            dst.mkdir(exist_ok=True)
        last = segments[-1]
        src = src / last
        if src.is_dir():
            shutil.copytree(src, dst / last, dirs_exist_ok=True)
        elif src.is_file():
            shutil.copy2(src, dst / last)
        else:
            raise NotFoundError(f"Couldn't find embedded path {src}.")
