"""Installer service API."""

from opam_wix.service.installer_service import InstallerOptions, InstallerResult, InstallerService

__all__ = ["InstallerService", "InstallerOptions", "InstallerResult"]
