"""Identifier derivation for staged top-level directories."""

from __future__ import annotations

from collections.abc import Iterable
from functools import cache

from opam_wix.errors import ConfigurationError
from opam_wix.models import DirIdentifiers

COMPONENT_GROUP_SUFFIX = "CG"
DIRECTORY_REF_SUFFIX = "_REF"
VAR_PREFIX = "var."
VAR_SUFFIX = "Dir"


def component_group(base_name: str) -> str:
    """``mydoc`` -> ``MydocCG``. Only the first character is upper-cased."""
    return base_name[:1].upper() + base_name[1:] + COMPONENT_GROUP_SUFFIX


def directory_ref(base_name: str) -> str:
    """``mydoc`` -> ``mydoc_REF``."""
    return base_name + DIRECTORY_REF_SUFFIX


def toolchain_var(base_name: str) -> str:
    """``mydoc`` -> ``var.mydocDir``."""
    return VAR_PREFIX + base_name + VAR_SUFFIX


@cache
def derive(base_name: str) -> DirIdentifiers:
    """Derive all identifiers for one directory base name."""
    if not base_name:
        raise ConfigurationError("Cannot derive identifiers from an empty directory name.")
    return DirIdentifiers(
        base_name=base_name,
        component_group_name=component_group(base_name),
        directory_ref_name=directory_ref(base_name),
        toolchain_var_name=toolchain_var(base_name),
    )


def derive_all(base_names: Iterable[str]) -> list[DirIdentifiers]:
    """Derive identifiers for every directory, preserving order.

    Component group names are compared case-insensitively, since the
    installer database treats them that way.
    """
    seen: dict[str, str] = {}
    result = []
    for base_name in base_names:
        ids = derive(base_name)
        key = ids.component_group_name.lower()
        if key in seen:
            raise ConfigurationError(
                f"Directories {seen[key]!r} and {base_name!r} map to the same component "
                f"group {ids.component_group_name!r}. Rename one of them."
            )
        seen[key] = base_name
        result.append(ids)
    return result
