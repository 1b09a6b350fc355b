"""Embedding models.

An EmbedSpec is what the config declares. The classifier turns each one
into exactly one EmbedMode, a discriminated union consumed with ``match``
by the stager.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class EmbedSpec(BaseModel):
    """A declared file or directory to include in the installation tree."""

    model_config = ConfigDict(frozen=True)

    source_path: str = Field(..., description="Declared path, may contain %{var}% references")
    alias: str | None = Field(default=None, description="Destination base name in the bundle")


# =============================================================================
# Embed modes
# =============================================================================


class AliasFile(BaseModel):
    """Single file copied to bundle/<dst_name>."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["alias_file"] = "alias_file"
    source: Path
    dst_name: str


class AliasDir(BaseModel):
    """Directory copied recursively to bundle/<dst_name>."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["alias_dir"] = "alias_dir"
    source: Path
    dst_name: str


class PrefixRelative(BaseModel):
    """Sub-path of the package prefix, staged under bundle/opam/."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["prefix_relative"] = "prefix_relative"
    relative_path: str


class ExternalRelative(BaseModel):
    """Relative path outside the prefix, staged under bundle/external/."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["external_relative"] = "external_relative"
    relative_path: str


EmbedMode = Annotated[
    AliasFile | AliasDir | PrefixRelative | ExternalRelative,
    Field(discriminator="kind"),
]


class StagedEntry(BaseModel):
    """A top-level entry materialized in the bundle directory."""

    model_config = ConfigDict(frozen=True)

    base_name: str
    is_directory: bool
    bundle_relative_path: Path
