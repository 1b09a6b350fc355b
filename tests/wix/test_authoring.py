"""Tests for AuthoringModelBuilder."""

from pathlib import Path

import pytest

from opam_wix.bundler.stager import StagedBundle
from opam_wix.errors import ConfigurationError
from opam_wix.models import InstalledPackage, MsiVersion, StagedEntry
from opam_wix.wix.authoring import (
    AuthoringModelBuilder,
    build_description,
    expand_environment,
    installed_paths,
)


def entry(name: str, is_directory: bool = True) -> StagedEntry:
    return StagedEntry(base_name=name, is_directory=is_directory, bundle_relative_path=Path(name))


@pytest.fixture
def bundle(tmp_path: Path) -> StagedBundle:
    return StagedBundle(
        bundle_dir=tmp_path / "foo.1.2.0",
        executable="foo.exe",
        dlls=["libgmp-10.dll"],
        alias_dirs=[entry("mydoc")],
        alias_files=[entry("README.txt", is_directory=False)],
        containers=[entry("opam"), entry("external")],
    )


@pytest.fixture
def builder(foo_package: InstalledPackage) -> AuthoringModelBuilder:
    return AuthoringModelBuilder(foo_package, MsiVersion(value="1.2.0"), Path("/switch/bin/foo.exe"))


def test_installed_paths(bundle):
    assert installed_paths(bundle) == {
        "mydoc": "[INSTALLDIR]mydoc",
        "README.txt": "[INSTALLDIR]README.txt",
        "opam": "[INSTALLDIR]opam",
        "external": "[INSTALLDIR]external",
    }


def test_expand_environment_leaves_unknown_references():
    paths = {"mydoc": "[INSTALLDIR]mydoc"}
    variables = [("FOO_DOC", "%{mydoc}%\\html"), ("OTHER", "%{unknown}%")]

    assert expand_environment(variables, paths) == [
        ("FOO_DOC", "[INSTALLDIR]mydoc\\html"),
        ("OTHER", "%{unknown}%"),
    ]


def test_description_fallbacks(prefix):
    binary = Path("/switch/bin/foo.exe")
    base = dict(name="foo", version="1.0", bin_dir=prefix / "bin")

    assert build_description(InstalledPackage(synopsis="Short", description="Long", **base), binary) == "Short"
    assert build_description(InstalledPackage(description="Long", **base), binary) == "Long"
    assert (
        build_description(InstalledPackage(**base), binary)
        == f"Package foo.1.0 - binary {binary}"
    )


def test_metadata(builder):
    meta = builder.metadata()

    assert meta.name == "foo"
    assert str(meta.version) == "1.2.0"
    assert meta.description == "Foo does things"
    assert meta.manufacturer == "Jane Doe <jane@example.com>"
    assert meta.tags == ["ocaml"]
    assert meta.package_guid is None


def test_metadata_joins_maintainers_and_keeps_tags(prefix):
    package = InstalledPackage(
        name="bar",
        version="2.0",
        maintainers=["A", "B"],
        tags=["cli", "tools"],
        bin_dir=prefix / "bin",
    )
    meta = AuthoringModelBuilder(package, MsiVersion(value="2.0"), Path("bar"), "GUID").metadata()

    assert meta.manufacturer == "A, B"
    assert meta.tags == ["cli", "tools"]
    assert meta.package_guid == "GUID"


def test_build(builder, bundle):
    """Directories are alias dirs then containers; files are alias files only."""
    model = builder.build(bundle, [("FOO_DOC", "%{mydoc}%")])

    assert model.bundle_name == "foo.1.2.0"
    assert model.executable == "foo.exe"
    assert model.product_name == "foo"
    assert model.dlls == ["libgmp-10.dll"]
    assert model.embedded_files == ["README.txt"]
    assert [ids.base_name for ids in model.directories] == ["mydoc", "opam", "external"]
    assert [ids.component_group_name for ids in model.directories] == ["MydocCG", "OpamCG", "ExternalCG"]
    assert model.environment == [("FOO_DOC", "[INSTALLDIR]mydoc")]


def test_build_rejects_colliding_directories(builder, bundle):
    bundle.alias_dirs = [entry("Opam")]

    with pytest.raises(ConfigurationError):
        builder.build(bundle)
