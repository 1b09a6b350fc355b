"""Shared test fixtures and helpers."""

import subprocess
from pathlib import Path

import pytest

from opam_wix.models import InstalledPackage
from opam_wix.service.dependency_scanner import MockDependencyScanner
from opam_wix.service.package_state import MockPackageState
from opam_wix.wix.toolchain import WixTools


class RecordingRunner:
    """Fake process runner for the WiX tools.

    Records every command and creates the files the real tool would
    produce, so later phases find their inputs.

    Usage:
        runner = RecordingRunner()
        tools = WixTools(wix_dir, runner=runner, converter=str)
        ...
        assert runner.tools() == ["heat", "candle", "candle", "light"]
    """

    def __init__(self, fail_on: str | None = None, stderr: str = "boom"):
        self.calls: list[tuple[list[str], Path]] = []
        self.fail_on = fail_on
        self.stderr = stderr

    def tools(self) -> list[str]:
        return [Path(cmd[0]).stem for cmd, _ in self.calls]

    def commands(self, tool: str) -> list[list[str]]:
        return [cmd for cmd, _ in self.calls if Path(cmd[0]).stem == tool]

    def __call__(self, cmd: list[str], cwd: Path) -> subprocess.CompletedProcess:
        self.calls.append((cmd, cwd))
        tool = Path(cmd[0]).stem
        if tool == self.fail_on:
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr=self.stderr)

        out = cmd[cmd.index("-o") + 1] if "-o" in cmd else None
        if tool == "heat":
            Path(out).write_text('<Wix><Fragment /></Wix>')
        elif tool == "candle" and out is not None:
            Path(out).write_text("object")
        elif tool == "candle":
            for source in cmd[1:]:
                if not source.startswith("-d"):
                    (cwd / (Path(source).stem + ".wixobj")).write_text("object")
        elif tool == "light":
            (cwd / out).write_text("msi")
            (cwd / out).with_suffix(".wixpdb").write_text("pdb")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def make_executable(path: Path, content: str = "binary") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(0o755)
    return path


@pytest.fixture
def wix_dir(tmp_path: Path) -> Path:
    """Directory holding fake heat/candle/light executables."""
    wix = tmp_path / "wix"
    for tool in ("heat", "candle", "light"):
        make_executable(wix / f"{tool}.exe")
    return wix


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def runner_factory() -> type[RecordingRunner]:
    """RecordingRunner class, for tests that need a failing tool."""
    return RecordingRunner


@pytest.fixture
def tools(wix_dir: Path, runner: RecordingRunner) -> WixTools:
    return WixTools(wix_dir, runner=runner, converter=str)


@pytest.fixture
def prefix(tmp_path: Path) -> Path:
    """Fake opam switch prefix with a ``foo`` binary and some shared files."""
    root = tmp_path / "switch"
    make_executable(root / "bin" / "foo.exe")
    doc = root / "share" / "doc"
    doc.mkdir(parents=True)
    (doc / "README.md").write_text("readme")
    (doc / "sub").mkdir()
    (doc / "sub" / "guide.txt").write_text("guide")
    (root / "lib" / "odoc").mkdir(parents=True)
    (root / "lib" / "odoc" / "odoc.cmi").write_text("cmi")
    return root


@pytest.fixture
def foo_package(prefix: Path) -> InstalledPackage:
    return InstalledPackage(
        name="foo",
        version="1.2.0",
        synopsis="Foo does things",
        maintainers=["Jane Doe <jane@example.com>"],
        binaries=["foo"],
        bin_dir=prefix / "bin",
    )


@pytest.fixture
def package_state(prefix: Path, foo_package: InstalledPackage) -> MockPackageState:
    state = MockPackageState(
        prefix=prefix,
        variables={"share": str(prefix / "share"), "lib": str(prefix / "lib")},
    )
    state.seed(foo_package)
    return state


@pytest.fixture
def scanner() -> MockDependencyScanner:
    return MockDependencyScanner()


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Invocation directory, root of external embeds."""
    cwd = tmp_path / "cwd"
    cwd.mkdir()
    return cwd
