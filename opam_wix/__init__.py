"""opam-wix: Windows MSI installers for opam packages."""

__version__ = "0.1.0"
