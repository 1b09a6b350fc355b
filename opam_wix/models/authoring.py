"""Authoring models for the main installer document."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

MSI_VERSION_RE = re.compile(r"^[0-9]+(\.[0-9]+)*$")


class MsiVersion(BaseModel):
    """Product version in MSI format: dot separated numbers."""

    model_config = ConfigDict(frozen=True)

    value: str

    @field_validator("value")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if not MSI_VERSION_RE.match(v):
            raise ValueError(
                f"Version {v!r} is not an MSI version: only dot separated numbers are allowed"
            )
        return v

    def __str__(self) -> str:
        return self.value


class DirIdentifiers(BaseModel):
    """Identifiers derived from a staged top-level directory's base name.

    These are threaded through the harvest fragment, the main document and
    the compile defines, so they must agree across all toolchain phases.
    """

    model_config = ConfigDict(frozen=True)

    base_name: str
    component_group_name: str
    directory_ref_name: str
    toolchain_var_name: str

    @property
    def define_name(self) -> str:
        """Name bound on the compile command line (``var.`` stripped)."""
        return self.toolchain_var_name.removeprefix("var.")


class PackageMetadata(BaseModel):
    """Package fields shown by Windows Installer."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: MsiVersion
    description: str
    manufacturer: str
    tags: list[str] = Field(default_factory=lambda: ["ocaml"])
    package_guid: str | None = None


class ImageFiles(BaseModel):
    """Base names of the three GUI images staged in the bundle."""

    model_config = ConfigDict(frozen=True)

    icon: str = "logo.ico"
    dialog_bmp: str = "dlgbmp.bmp"
    banner_bmp: str = "bannrbmp.bmp"


class AuthoringModel(BaseModel):
    """Everything the renderer needs to write the main document.

    Built once per run by AuthoringModelBuilder and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    bundle_name: str
    metadata: PackageMetadata
    executable: str
    dlls: list[str] = Field(default_factory=list)
    embedded_files: list[str] = Field(default_factory=list)
    directories: list[DirIdentifiers] = Field(default_factory=list)
    images: ImageFiles = Field(default_factory=ImageFiles)
    environment: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def product_name(self) -> str:
        """Executable name without extension."""
        return self.executable.rsplit(".", 1)[0]
