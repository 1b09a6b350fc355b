"""Data models for the installer pipeline."""

from .authoring import (
    AuthoringModel,
    DirIdentifiers,
    ImageFiles,
    MsiVersion,
    PackageMetadata,
)
from .embed import (
    AliasDir,
    AliasFile,
    EmbedMode,
    EmbedSpec,
    ExternalRelative,
    PrefixRelative,
    StagedEntry,
)
from .jobs import CompileJob, HarvestJob, LinkJob, Many, One, ToolchainJob
from .package import InstalledPackage

__all__ = [
    "AliasDir",
    "AliasFile",
    "AuthoringModel",
    "CompileJob",
    "DirIdentifiers",
    "EmbedMode",
    "EmbedSpec",
    "ExternalRelative",
    "HarvestJob",
    "ImageFiles",
    "InstalledPackage",
    "LinkJob",
    "Many",
    "MsiVersion",
    "One",
    "PackageMetadata",
    "PrefixRelative",
    "StagedEntry",
    "ToolchainJob",
]
