"""MSI version selection.

MSI accepts only dot separated numbers. When the package version has other
characters, the leading numeric part is offered to the user instead.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from pydantic import ValidationError

from opam_wix.errors import AbortedError, NotFoundError
from opam_wix.models import MsiVersion

logger = logging.getLogger(__name__)

LEADING_VERSION_RE = re.compile(r"^[0-9.]*")

USE_HINT = "use config file to set it or option --with-version"


def parse(value: str) -> MsiVersion | None:
    """Return the MSI version for value, or None if it is not one."""
    try:
        return MsiVersion(value=value)
    except ValidationError:
        return None


def select_version(
    package_version: str,
    override: MsiVersion | None,
    confirm: Callable[[str], bool],
) -> MsiVersion:
    """Pick the installer version.

    Args:
        package_version: Version string of the installed package
        override: Version given on the command line or in the config
        confirm: Asks the user a yes/no question

    Raises:
        NotFoundError: No leading numeric part in package_version
        AbortedError: The user declined the simplified version
    """
    if override is not None:
        return override
    version = parse(package_version)
    if version is not None:
        return version

    logger.warning(f"Package version {package_version} contains characters not accepted by MSI.")
    simplified = LEADING_VERSION_RE.match(package_version).group(0).rstrip(".")
    version = parse(simplified)
    if version is None:
        raise NotFoundError(f"No version can be retrieved from '{package_version}', {USE_HINT}.")
    logger.info(f"It must be only dot separated numbers. You can {USE_HINT}.")
    if not confirm(f"Do you want to use simplified version {simplified}?"):
        raise AbortedError(f"Simplified version {simplified} declined.")
    return version
