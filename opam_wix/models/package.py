"""Installed package as reported by the package-state collaborator."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class InstalledPackage(BaseModel):
    """Read-only view of an installed opam package."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    synopsis: str | None = None
    description: str | None = None
    maintainers: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    binaries: list[str] = Field(default_factory=list, description="Binary names without extension")
    bin_dir: Path

    @property
    def full_name(self) -> str:
        """opam's ``name.version`` form."""
        return f"{self.name}.{self.version}"
