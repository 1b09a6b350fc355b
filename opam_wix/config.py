"""Configuration: environment settings and the embedding config file.

Settings come from the process environment, optionally loaded from a
``.env`` file. The embedding config is a YAML file validated with pydantic:

    opamwix-version: "0.1"
    binary: foo
    wix_version: 1.2.3
    images: {ico: logo.ico, dlg: dlg.bmp, ban: banner.bmp}
    embedded:
      - ["mydoc", "%{share}%/doc"]
      - ["%{prefix}%/lib/odoc"]
      - ["dir1/dir2/file.txt"]
    envvar:
      - ["DOC", "%{mydoc}%"]
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from opam_wix.errors import ConfigurationError
from opam_wix.models import EmbedSpec, MsiVersion

logger = logging.getLogger(__name__)

DEFAULT_CONF = Path("opam-wix.yaml")
DEFAULT_WIX_PATH = "/cygdrive/c/Program Files (x86)/WiX Toolset v3.11/bin"
CONFIG_VERSION = "0.1"


@dataclass
class Settings:
    """Process-level settings."""

    wix_path: str
    conf: Path | None
    log_level: str

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> Settings:
        """Read settings, loading env_file (default ``./.env``) first if present."""
        env_path = env_file or Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
        conf = os.getenv("OPAM_WIX_CONF")
        return cls(
            wix_path=os.getenv("OPAM_WIX_PATH", DEFAULT_WIX_PATH),
            conf=Path(conf) if conf else None,
            log_level=os.getenv("OPAM_WIX_LOG_LEVEL", "INFO").upper(),
        )

    def logging_level(self) -> int:
        """Numeric logging level named by log_level."""
        level = logging.getLevelName(self.log_level)
        if not isinstance(level, int):
            raise ConfigurationError(
                f"Unknown log level {self.log_level!r} in OPAM_WIX_LOG_LEVEL. "
                "Use one of DEBUG, INFO, WARNING, ERROR, CRITICAL."
            )
        return level


class ImagesConfig(BaseModel):
    """Optional replacements for the built-in GUI images."""

    model_config = ConfigDict(extra="forbid")

    ico: str | None = None
    dlg: str | None = None
    ban: str | None = None


class ConfigFile(BaseModel):
    """Embedding config file contents."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    version: str = Field(default=CONFIG_VERSION, alias="opamwix-version")
    binary: str | None = None
    binary_path: str | None = Field(default=None, alias="binary-path")
    wix_version: MsiVersion | None = None
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    embedded: list[EmbedSpec] = Field(default_factory=list)
    envvar: list[tuple[str, str]] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> str:
        return str(v)

    @field_validator("wix_version", mode="before")
    @classmethod
    def parse_wix_version(cls, v: Any) -> Any:
        if v is None or isinstance(v, MsiVersion):
            return v
        return MsiVersion(value=str(v))

    @field_validator("embedded", mode="before")
    @classmethod
    def parse_embedded(cls, v: Any) -> Any:
        """Accept ``[path]``, ``[alias, path]`` or ``{path, alias}`` entries."""
        if v is None:
            return []
        entries = []
        for item in v:
            if isinstance(item, EmbedSpec):
                entries.append(item)
            elif isinstance(item, str):
                entries.append({"source_path": item})
            elif isinstance(item, list) and len(item) == 1:
                entries.append({"source_path": item[0]})
            elif isinstance(item, list) and len(item) == 2:
                entries.append({"alias": item[0], "source_path": item[1]})
            elif isinstance(item, dict) and "path" in item:
                entries.append({"source_path": item["path"], "alias": item.get("alias")})
            else:
                raise ValueError(f"Invalid embedded entry: {item!r}")
        return entries

    @field_validator("envvar", mode="before")
    @classmethod
    def parse_envvar(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, dict):
            return [(str(name), str(value)) for name, value in v.items()]
        return v


def load_config(path: Path | None) -> ConfigFile:
    """Load a config file.

    An explicitly given file must exist. When path is None the default
    ``opam-wix.yaml`` is read if present, otherwise the config is empty.
    """
    if path is None:
        if not DEFAULT_CONF.exists():
            return ConfigFile()
        path = DEFAULT_CONF
    if not path.is_file():
        raise ConfigurationError(f"Config file {path} not found.")
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} is not a mapping.")
    try:
        config = ConfigFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config file {path}:\n{e}") from e
    if config.version != CONFIG_VERSION:
        logger.warning(f"Config file version {config.version} differs from {CONFIG_VERSION}.")
    logger.debug(f"Loaded config {path}: {len(config.embedded)} embedded entries")
    return config
