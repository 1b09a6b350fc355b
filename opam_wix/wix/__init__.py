"""WiX authoring and toolchain."""

from .authoring import AuthoringModelBuilder
from .render import render, write_wxs
from .toolchain import Phase, ToolchainDriver, WixTools

__all__ = ["AuthoringModelBuilder", "Phase", "ToolchainDriver", "WixTools", "render", "write_wxs"]
