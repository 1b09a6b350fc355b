"""Error kinds raised by the installer pipeline.

Every error is fatal at the point it is raised. Each class carries the
process exit code that ``main()`` reports, using opam's exit code values.
"""


class InstallerError(Exception):
    """Base class for all pipeline failures."""

    exit_code = 1


class ConfigurationError(InstallerError):
    """Malformed config, stale config reference, or bundle name collision."""

    exit_code = 50


class NotFoundError(InstallerError):
    """Missing package, binary, embed source, tool or toolchain output."""

    exit_code = 5


class BadArgumentsError(InstallerError):
    """Mutually exclusive or invalid options supplied together."""

    exit_code = 2


class AbortedError(InstallerError):
    """User declined an interactive confirmation."""

    exit_code = 10


class ToolchainFailure(InstallerError):
    """Non-zero exit from an external toolchain invocation."""

    exit_code = 10

    def __init__(self, tool: str, command: list[str], returncode: int, stderr: str):
        self.tool = tool
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"{tool} failed with exit code {returncode}: {stderr.strip() or '(no output)'}"
        )
