"""Toolchain job models.

Jobs are transient: the driver builds a fresh list per run and dispatches
each one with ``match`` on its concrete type.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from .authoring import DirIdentifiers


class One(BaseModel):
    """Single document compiled to an explicit object path."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["one"] = "one"
    source: Path
    out: Path


class Many(BaseModel):
    """Batch of documents compiled together into the working directory."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["many"] = "many"
    sources: list[Path]


class HarvestJob(BaseModel):
    """Generate a fragment describing one staged directory."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["harvest"] = "harvest"
    directory: Path
    out_fragment: Path
    identifiers: DirIdentifiers


class CompileJob(BaseModel):
    """Compile one or many documents into objects."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["compile"] = "compile"
    inputs: Annotated[One | Many, Field(discriminator="kind")]
    defines: dict[str, str] = Field(default_factory=dict)

    @property
    def objects(self) -> list[Path]:
        """Object paths this job is expected to produce, relative or absolute."""
        match self.inputs:
            case One(out=out):
                return [out]
            case Many(sources=sources):
                return [Path(source.stem + ".wixobj") for source in sources]


class LinkJob(BaseModel):
    """Link all compiled objects into the installer artifact."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["link"] = "link"
    objects: list[Path]
    extensions: list[str]
    out_artifact: str


ToolchainJob = Annotated[HarvestJob | CompileJob | LinkJob, Field(discriminator="kind")]
