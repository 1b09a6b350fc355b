"""
Command line entry point: Windows MSI installer generation for opam packages.

Usage:
    opam-wix PACKAGE [-b NAME | --bp PATH] [OTHER OPTIONS]
"""

import argparse
import logging
import sys
from pathlib import Path

from opam_wix.config import Settings, load_config
from opam_wix.errors import AbortedError, InstallerError
from opam_wix.models import MsiVersion
from opam_wix.service import InstallerOptions, InstallerService
from opam_wix.service.dependency_scanner import CygcheckScanner
from opam_wix.service.package_state import OpamCliPackageState
from opam_wix.wix.toolchain import WixTools

logger = logging.getLogger(__name__)


def msi_version(value: str) -> MsiVersion:
    try:
        return MsiVersion(value=value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def ask(question: str) -> bool:
    """Interactive yes/no prompt on the terminal."""
    try:
        answer = input(f"{question} [Y/n] ").strip().lower()
    except EOFError as e:
        raise AbortedError("No answer on standard input. Use --yes to run non-interactively.") from e
    return answer in ("", "y", "yes")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opam-wix",
        description="Windows MSI installer generation for opam packages",
    )
    parser.add_argument("package", help="The package to create an installer")

    binary = parser.add_argument_group("binary arguments")
    binary.add_argument(
        "-c", "--conf", type=Path, default=settings.conf,
        help="Configuration file for the binary to install",
    )
    binary.add_argument("--binary-path", "--bp", type=Path, help="The path to the binary file to handle")
    binary.add_argument(
        "-b", "--binary",
        help="The binary name to handle. Specified package should contain the binary with the same name.",
    )

    parser.add_argument(
        "--with-version", dest="wix_version", type=msi_version,
        help="The version to use for the installer, in an msi format, i.e. numbers and dots, [0-9.]+",
    )
    parser.add_argument(
        "-o", "--output", dest="output_dir", type=Path, default=Path("."),
        help="The output directory where bundle will be stored",
    )
    parser.add_argument(
        "--wix-path", type=Path, default=Path(settings.wix_path),
        help="The path where WIX tools are stored",
    )
    parser.add_argument(
        "--pkg-guid", dest="package_guid",
        help="The package GUID used to upgrade the same package with a different version",
    )
    parser.add_argument("--ico", dest="icon_file", type=Path, help="Logo icon that will be used for application")
    parser.add_argument("--dlg-bmp", type=Path, help="BMP file used as background for the installer dialog")
    parser.add_argument("--ban-bmp", type=Path, help="BMP file used as background for the installer banner")
    parser.add_argument("--keep-wxs", action="store_true", help="Keep Wix source files")
    parser.add_argument("-y", "--yes", action="store_true", help="Answer yes to every question")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    settings = Settings.from_env()
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(format="%(levelname)s: %(message)s")

    try:
        logging.getLogger().setLevel(logging.DEBUG if args.verbose else settings.logging_level())
        config = load_config(args.conf)
        options = InstallerOptions(
            package=args.package,
            binary_path=args.binary_path,
            binary=args.binary,
            wix_version=args.wix_version,
            output_dir=args.output_dir,
            package_guid=args.package_guid,
            icon_file=args.icon_file,
            dlg_bmp=args.dlg_bmp,
            ban_bmp=args.ban_bmp,
            keep_wxs=args.keep_wxs,
        )
        service = InstallerService(
            package_state=OpamCliPackageState(),
            dependency_scanner=CygcheckScanner(),
            tools=WixTools(args.wix_path),
            confirm=(lambda question: True) if args.yes else ask,
        )
        service.build(options, config)
    except InstallerError as e:
        logger.error(str(e))
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
