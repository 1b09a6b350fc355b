"""Built-in payloads shipped with the package.

Every pair is (file name, path inside this package).
"""

from importlib import resources

from opam_wix.errors import ConfigurationError

LOGO = ("logo.ico", "images/logo.ico")
DIALOG_BMP = ("dlgbmp.bmp", "images/dlgbmp.bmp")
BANNER_BMP = ("bannrbmp.bmp", "images/bannrbmp.bmp")

CUSTOM_INSTALL_DIR = ("CustomInstallDir.wxs", "wix/CustomInstallDir.wxs")
CUSTOM_INSTALL_DIR_DLG = ("CustomInstallDirDlg.wxs", "wix/CustomInstallDirDlg.wxs")

AUXILIARY_DOCUMENTS = [CUSTOM_INSTALL_DIR, CUSTOM_INSTALL_DIR_DLG]


def read(resource: str) -> bytes:
    """Read a payload, failing with a configuration error if it was removed."""
    path = resources.files(__name__).joinpath(resource)
    try:
        return path.read_bytes()
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Seems like you moved your data/{resource}. This file is required since it is "
            "used by default. If you want to replace it, keep the same name and path."
        ) from e
