"""Tests for the bundle Stager."""

from pathlib import Path

import pytest

from opam_wix import data
from opam_wix.bundler.stager import Stager, with_exe_suffix
from opam_wix.errors import ConfigurationError, NotFoundError
from opam_wix.models import AliasDir, AliasFile, ExternalRelative, PrefixRelative


@pytest.fixture
def stager(tmp_path: Path, prefix: Path, workdir: Path) -> Stager:
    return Stager(tmp_path / "work" / "foo.1.2.0", prefix, workdir)


def test_with_exe_suffix():
    assert with_exe_suffix("foo") == "foo.exe"
    assert with_exe_suffix("foo.exe") == "foo.exe"


def test_stage_minimal_bundle(stager, prefix):
    """Executable and default images only; empty containers are not reported."""
    bundle = stager.stage(prefix / "bin" / "foo.exe", dlls=[], modes=[])

    assert bundle.name == "foo.1.2.0"
    assert bundle.executable == "foo.exe"
    assert (bundle.bundle_dir / "foo.exe").read_text() == "binary"
    assert bundle.images.icon == "logo.ico"
    assert (bundle.bundle_dir / "logo.ico").read_bytes() == data.read(data.LOGO[1])
    assert (bundle.bundle_dir / "dlgbmp.bmp").exists()
    assert (bundle.bundle_dir / "bannrbmp.bmp").exists()
    assert bundle.containers == []
    assert bundle.directories == []
    assert bundle.embedded == []


def test_stage_executable_forces_exe_suffix(stager, tmp_path):
    binary = tmp_path / "bin" / "tool"
    binary.parent.mkdir()
    binary.write_text("tool")
    stager.prepare()

    assert stager.stage_executable(binary) == "tool.exe"
    assert (stager.bundle_dir / "tool.exe").exists()


def test_stage_executable_missing(stager, tmp_path):
    stager.prepare()
    with pytest.raises(NotFoundError):
        stager.stage_executable(tmp_path / "missing.exe")


def test_stage_dlls_flat(stager, tmp_path, prefix):
    """Libraries land in the bundle root, duplicates reported once."""
    lib = tmp_path / "mingw" / "bin" / "libgmp-10.dll"
    lib.parent.mkdir(parents=True)
    lib.write_text("dll")

    bundle = stager.stage(prefix / "bin" / "foo.exe", dlls=[lib, lib], modes=[])

    assert bundle.dlls == ["libgmp-10.dll"]
    assert (bundle.bundle_dir / "libgmp-10.dll").exists()


def test_stage_dll_missing(stager, tmp_path):
    stager.prepare()
    with pytest.raises(NotFoundError, match="library"):
        stager.stage_dlls([tmp_path / "gone.dll"])


def test_stage_image_override(stager, tmp_path):
    icon = tmp_path / "custom.ico"
    icon.write_bytes(b"ico")
    stager.prepare()

    assert stager.stage_image(icon, data.LOGO) == "custom.ico"
    assert (stager.bundle_dir / "custom.ico").read_bytes() == b"ico"


def test_stage_image_override_missing(stager, tmp_path):
    stager.prepare()
    with pytest.raises(NotFoundError, match="image"):
        stager.stage_image(tmp_path / "missing.ico", data.LOGO)


def test_alias_dir_and_file(stager, prefix):
    """Aliases become top-level entries under their alias name."""
    modes = [
        AliasDir(source=prefix / "share" / "doc", dst_name="mydoc"),
        AliasFile(source=prefix / "share" / "doc" / "README.md", dst_name="README.txt"),
    ]

    bundle = stager.stage(prefix / "bin" / "foo.exe", dlls=[], modes=modes)

    root = bundle.bundle_dir
    assert (root / "mydoc" / "sub" / "guide.txt").read_text() == "guide"
    assert (root / "README.txt").read_text() == "readme"
    assert [e.base_name for e in bundle.alias_dirs] == ["mydoc"]
    assert [e.base_name for e in bundle.alias_files] == ["README.txt"]
    assert [e.base_name for e in bundle.directories] == ["mydoc"]
    assert [e.base_name for e in bundle.embedded] == ["mydoc", "README.txt"]


def test_alias_missing_source(stager, prefix):
    stager.prepare()
    with pytest.raises(NotFoundError, match="directory"):
        stager.stage_embedded(AliasDir(source=prefix / "gone", dst_name="gone"))
    with pytest.raises(NotFoundError, match="file"):
        stager.stage_embedded(AliasFile(source=prefix / "gone.txt", dst_name="gone.txt"))


def test_alias_name_collision(stager, prefix):
    """An alias may not overwrite another bundle entry."""
    stager.prepare()
    (stager.bundle_dir / "foo.exe").write_text("exe")

    with pytest.raises(ConfigurationError, match="collides"):
        stager.stage_embedded(
            AliasFile(source=prefix / "share" / "doc" / "README.md", dst_name="foo.exe")
        )


def test_prefix_relative_preserves_sub_path(stager, prefix):
    """Prefix-relative embeds land under opam/ with their path kept."""
    modes = [PrefixRelative(relative_path="lib/odoc/odoc.cmi")]

    bundle = stager.stage(prefix / "bin" / "foo.exe", dlls=[], modes=modes)

    assert (bundle.bundle_dir / "opam" / "lib" / "odoc" / "odoc.cmi").read_text() == "cmi"
    assert [e.base_name for e in bundle.containers] == ["opam"]
    assert bundle.alias_dirs == []


def test_prefix_relative_directory(stager, prefix):
    bundle = stager.stage(
        prefix / "bin" / "foo.exe", dlls=[], modes=[PrefixRelative(relative_path="share/doc")]
    )

    assert (bundle.bundle_dir / "opam" / "share" / "doc" / "sub" / "guide.txt").exists()


def test_external_relative_preserves_sub_path(stager, prefix, workdir):
    (workdir / "dir1" / "dir2").mkdir(parents=True)
    (workdir / "dir1" / "dir2" / "file.txt").write_text("ext")

    bundle = stager.stage(
        prefix / "bin" / "foo.exe",
        dlls=[],
        modes=[ExternalRelative(relative_path="dir1/dir2/file.txt")],
    )

    assert (bundle.bundle_dir / "external" / "dir1" / "dir2" / "file.txt").read_text() == "ext"
    assert [e.base_name for e in bundle.containers] == ["external"]


def test_overlapping_includes_merge(stager, prefix):
    """A directory and a file inside it may both be listed."""
    modes = [
        PrefixRelative(relative_path="share/doc/README.md"),
        PrefixRelative(relative_path="share/doc"),
    ]

    bundle = stager.stage(prefix / "bin" / "foo.exe", dlls=[], modes=modes)

    doc = bundle.bundle_dir / "opam" / "share" / "doc"
    assert (doc / "README.md").exists()
    assert (doc / "sub" / "guide.txt").exists()


def test_include_missing_source(stager, prefix):
    stager.prepare()
    with pytest.raises(NotFoundError):
        stager.stage_embedded(PrefixRelative(relative_path="lib/nothing/here.txt"))


def test_both_containers_in_order(stager, prefix, workdir):
    (workdir / "notes.txt").write_text("n")
    modes = [
        ExternalRelative(relative_path="notes.txt"),
        PrefixRelative(relative_path="lib/odoc"),
    ]

    bundle = stager.stage(prefix / "bin" / "foo.exe", dlls=[], modes=modes)

    assert [e.base_name for e in bundle.containers] == ["opam", "external"]


def test_image_overrides_with_same_name_collide(stager, prefix, tmp_path):
    """Two overrides sharing a base name would overwrite each other."""
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    (tmp_path / "a" / "art.bmp").write_bytes(b"dialog")
    (tmp_path / "b" / "art.bmp").write_bytes(b"banner")

    with pytest.raises(ConfigurationError, match="art.bmp"):
        stager.stage(
            prefix / "bin" / "foo.exe",
            dlls=[],
            modes=[],
            dialog_bmp=tmp_path / "a" / "art.bmp",
            banner_bmp=tmp_path / "b" / "art.bmp",
        )


def test_dlls_with_same_name_from_different_paths_collide(stager, prefix, tmp_path):
    first = tmp_path / "x" / "libz.dll"
    second = tmp_path / "y" / "libz.dll"
    for dll in (first, second):
        dll.parent.mkdir()
        dll.write_text(str(dll))

    with pytest.raises(ConfigurationError, match="libz.dll"):
        stager.stage(prefix / "bin" / "foo.exe", dlls=[first, second], modes=[])


def test_dll_named_like_executable_collides(stager, prefix, tmp_path):
    dll = tmp_path / "FOO.EXE"
    dll.write_text("x")

    with pytest.raises(ConfigurationError):
        stager.stage(prefix / "bin" / "foo.exe", dlls=[dll], modes=[])


def test_alias_names_differing_in_case_collide(stager, prefix):
    modes = [
        AliasFile(source=prefix / "share" / "doc" / "README.md", dst_name="README.md"),
        AliasFile(source=prefix / "share" / "doc" / "README.md", dst_name="readme.md"),
    ]

    with pytest.raises(ConfigurationError, match="ignoring case"):
        stager.stage(prefix / "bin" / "foo.exe", dlls=[], modes=modes)


def test_alias_cannot_take_container_name(stager, prefix):
    modes = [AliasDir(source=prefix / "share" / "doc", dst_name="Opam")]

    with pytest.raises(ConfigurationError):
        stager.stage(prefix / "bin" / "foo.exe", dlls=[], modes=modes)


def test_include_going_up_is_rejected(stager, workdir):
    """Staging never writes outside its container."""
    (workdir / "dir1").mkdir()
    (workdir.parent / "secret.txt").write_text("s")
    stager.prepare()

    with pytest.raises(ConfigurationError, match="leaves its container"):
        stager.stage_embedded(ExternalRelative(relative_path="dir1/../../secret.txt"))
    assert not (stager.bundle_dir / "secret.txt").exists()


def tree_contents(root: Path) -> dict[str, bytes | None]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes() if path.is_file() else None
        for path in sorted(root.rglob("*"))
    }


def test_staging_is_idempotent_in_content(tmp_path, prefix, workdir):
    """Staging the same inputs into fresh roots gives byte-identical trees."""
    (workdir / "dir1").mkdir()
    (workdir / "dir1" / "notes.txt").write_text("notes")
    lib = tmp_path / "mingw" / "libgmp-10.dll"
    lib.parent.mkdir()
    lib.write_bytes(b"\x00dll")
    modes = [
        AliasDir(source=prefix / "share" / "doc", dst_name="mydoc"),
        AliasFile(source=prefix / "share" / "doc" / "README.md", dst_name="README.txt"),
        PrefixRelative(relative_path="lib/odoc"),
        ExternalRelative(relative_path="dir1/notes.txt"),
    ]

    bundles = [
        Stager(tmp_path / root / "foo.1.2.0", prefix, workdir).stage(
            prefix / "bin" / "foo.exe", dlls=[lib], modes=modes
        )
        for root in ("first", "second")
    ]

    first, second = (tree_contents(b.bundle_dir) for b in bundles)
    assert first == second
    assert "opam/lib/odoc/odoc.cmi" in first
    assert "external/dir1/notes.txt" in first
    assert bundles[0].embedded == bundles[1].embedded
    assert bundles[0].dlls == bundles[1].dlls == ["libgmp-10.dll"]
