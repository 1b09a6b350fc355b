"""Tests for the dependency scanners."""

import subprocess
from pathlib import Path

import pytest

from opam_wix.errors import ToolchainFailure
from opam_wix.service.dependency_scanner import (
    CygcheckScanner,
    MockDependencyScanner,
    parse_cygcheck,
)

CYGCHECK_OUTPUT = """\
C:\\cygwin64\\home\\user\\.opam\\default\\bin\\foo.exe
  C:\\cygwin64\\usr\\x86_64-w64-mingw32\\sys-root\\mingw\\bin\\libgmp-10.dll
    C:\\Windows\\system32\\KERNEL32.dll
      C:\\Windows\\system32\\ntdll.dll
  C:\\cygwin64\\usr\\x86_64-w64-mingw32\\sys-root\\mingw\\bin\\libwinpthread-1.dll
    C:\\cygwin64\\usr\\x86_64-w64-mingw32\\sys-root\\mingw\\bin\\libgmp-10.dll
  C:\\Windows\\system32\\msvcrt.dll
"""


def test_parse_cygcheck_skips_system_and_duplicates():
    assert parse_cygcheck(CYGCHECK_OUTPUT) == [
        "C:\\cygwin64\\usr\\x86_64-w64-mingw32\\sys-root\\mingw\\bin\\libgmp-10.dll",
        "C:\\cygwin64\\usr\\x86_64-w64-mingw32\\sys-root\\mingw\\bin\\libwinpthread-1.dll",
    ]


def test_parse_cygcheck_empty():
    assert parse_cygcheck("") == []


def test_mock_scanner():
    scanner = MockDependencyScanner()
    scanner.seed(Path("foo.exe"), [Path("a.dll")])

    assert scanner.get_dlls(Path("foo.exe")) == [Path("a.dll")]
    assert scanner.get_dlls(Path("bar.exe")) == []


def test_cygcheck_scanner_converts_paths(monkeypatch):
    commands = []

    def fake_run(cmd, capture_output, text, check):
        commands.append(cmd)
        if cmd[0] == "cygcheck":
            return subprocess.CompletedProcess(cmd, 0, stdout=CYGCHECK_OUTPUT, stderr="")
        name = cmd[-1].rsplit("\\", 1)[1]
        return subprocess.CompletedProcess(cmd, 0, stdout=f"/usr/mingw/bin/{name}\n", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    dlls = CygcheckScanner().get_dlls(Path("/opam/bin/foo.exe"))

    assert dlls == [Path("/usr/mingw/bin/libgmp-10.dll"), Path("/usr/mingw/bin/libwinpthread-1.dll")]
    assert commands[0] == ["cygcheck", "/opam/bin/foo.exe"]
    assert all(c[:2] == ["cygpath", "-u"] for c in commands[1:])


def test_cygcheck_scanner_failure(monkeypatch):
    def failing(cmd, capture_output, text, check):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="cannot open")

    monkeypatch.setattr(subprocess, "run", failing)

    with pytest.raises(ToolchainFailure, match="cygcheck"):
        CygcheckScanner().get_dlls(Path("foo.exe"))
