"""WiX toolchain driver.

Runs the WiX phases as blocking external processes:

1. harvest (heat): one fragment per staged top-level directory
2. compile fragments (candle): every fragment on its own
3. compile main (candle): the main document together with the auxiliary
   UI documents
4. link (light): all objects into ``<name>.msi``

Jobs are planned up front as an ordered list of phases, so compile order
never depends on when files appear on disk. Any non-zero exit aborts the
run with ToolchainFailure.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from opam_wix import data
from opam_wix.errors import ConfigurationError, NotFoundError, ToolchainFailure
from opam_wix.models import (
    AuthoringModel,
    CompileJob,
    DirIdentifiers,
    HarvestJob,
    LinkJob,
    Many,
    One,
    ToolchainJob,
)

from .render import write_wxs

logger = logging.getLogger(__name__)

LINK_EXTENSIONS = ["WixUIExtension", "WixUtilExtension"]
TOOLS = ("heat", "candle", "light")

Runner = Callable[[list[str], Path], subprocess.CompletedProcess]
PathConverter = Callable[[Path], str]


def run_process(cmd: list[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run a command to completion, capturing its output."""
    return subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        check=False,  # Exit code is checked by the caller
        cwd=cwd,
    )


def to_native_path(path: Path) -> str:
    """Absolute Windows path when running under Cygwin, plain string otherwise."""
    if sys.platform != "cygwin":
        return str(path)
    result = subprocess.run(
        ["cygpath", "-wa", str(path)], capture_output=True, text=True, check=False
    )
    if result.returncode != 0:
        raise ToolchainFailure("cygpath", ["cygpath", "-wa", str(path)], result.returncode, result.stderr)
    return result.stdout.strip()


class Phase(str, Enum):
    """Toolchain phases, in execution order."""

    HARVEST = "harvest"
    COMPILE_FRAGMENTS = "compile_fragments"
    COMPILE_MAIN = "compile_main"
    LINK = "link"


@dataclass
class PhasePlan:
    """All jobs of one phase, in the order they run."""

    phase: Phase
    jobs: list[ToolchainJob]


class WixTools:
    """Locates and invokes the WiX executables.

    Args:
        wix_path: Directory containing heat, candle and light
        runner: Process runner, replaced in tests
        converter: Path converter for tool arguments
    """

    def __init__(
        self,
        wix_path: Path,
        runner: Runner = run_process,
        converter: PathConverter = to_native_path,
    ):
        self.wix_path = wix_path
        self.runner = runner
        self.converter = converter

    def executable(self, tool: str) -> Path:
        for candidate in (self.wix_path / f"{tool}.exe", self.wix_path / tool):
            if candidate.is_file():
                return candidate
        raise NotFoundError(f"WiX tool {tool} not found in {self.wix_path}")

    def check_available(self) -> None:
        """Raise NotFoundError unless every WiX tool is present."""
        for tool in TOOLS:
            logger.debug(f"Found {tool}: {self.executable(tool)}")

    def path(self, path: Path) -> str:
        return self.converter(path)

    def call(self, tool: str, args: list[str], cwd: Path) -> subprocess.CompletedProcess:
        """Run one tool; a non-zero exit raises ToolchainFailure."""
        cmd = [str(self.executable(tool)), *args]
        logger.debug(f"Command: {' '.join(cmd)}")
        try:
            result = self.runner(cmd, cwd)
        except FileNotFoundError as e:
            raise NotFoundError(f"Cannot run {tool}: {e}") from e
        if result.returncode != 0:
            logger.error(f"{tool} failed with exit code {result.returncode}")
            raise ToolchainFailure(tool, cmd, result.returncode, result.stderr or result.stdout or "")
        return result

    def harvest_args(self, job: HarvestJob) -> list[str]:
        ids = job.identifiers
        return [
            "dir", self.path(job.directory),
            "-o", self.path(job.out_fragment),
            "-scom", "-frag", "-srd", "-sreg", "-gg",
            "-cg", ids.component_group_name,
            "-dr", ids.directory_ref_name,
            "-var", ids.toolchain_var_name,
        ]

    def compile_args(self, job: CompileJob) -> list[str]:
        defines = [f"-d{name}={value}" for name, value in job.defines.items()]
        match job.inputs:
            case One(source=source, out=out):
                return [self.path(source), *defines, "-o", self.path(out)]
            case Many(sources=sources):
                return [*(self.path(s) for s in sources), *defines]

    def link_args(self, job: LinkJob) -> list[str]:
        args = [self.path(obj) for obj in job.objects]
        for ext in job.extensions:
            args += ["-ext", ext]
        return [*args, "-o", job.out_artifact]


class ToolchainDriver:
    """Plans and runs the harvest, compile and link phases in a working root.

    Args:
        tools: WiX tool wrapper
        work_dir: Working root; fragments, objects and the artifact go here
        bundle_dir: Staged bundle directory inside work_dir
    """

    def __init__(self, tools: WixTools, work_dir: Path, bundle_dir: Path):
        self.tools = tools
        self.work_dir = work_dir
        self.bundle_dir = bundle_dir

    # -- documents ---------------------------------------------------------

    def write_documents(self, model: AuthoringModel) -> tuple[Path, list[Path]]:
        """Write the main document and the auxiliary UI documents."""
        main = write_wxs(model, self.work_dir / f"{model.product_name}.wxs")
        auxiliary = []
        for name, resource in data.AUXILIARY_DOCUMENTS:
            path = self.work_dir / name
            path.write_bytes(data.read(resource))
            auxiliary.append(path)
        return main, auxiliary

    # -- planning ----------------------------------------------------------

    def fragment(self, ids: DirIdentifiers) -> Path:
        return self.work_dir / f"{ids.base_name}.wxs"

    def fragment_object(self, ids: DirIdentifiers) -> Path:
        return self.work_dir / f"{ids.base_name}.wixobj"

    def harvest_jobs(self, directories: list[DirIdentifiers]) -> list[HarvestJob]:
        return [
            HarvestJob(
                directory=self.bundle_dir / ids.base_name,
                out_fragment=self.fragment(ids),
                identifiers=ids,
            )
            for ids in directories
        ]

    def fragment_compile_jobs(self, directories: list[DirIdentifiers]) -> list[CompileJob]:
        return [
            CompileJob(
                inputs=One(source=self.fragment(ids), out=self.fragment_object(ids)),
                defines={ids.define_name: f"{self.bundle_dir.name}\\{ids.base_name}"},
            )
            for ids in directories
        ]

    def main_compile_job(self, main: Path, auxiliary: list[Path]) -> CompileJob:
        """One batch job for the main and auxiliary documents, objects land in work_dir."""
        return CompileJob(inputs=Many(sources=[main, *auxiliary]))

    def link_job(
        self, directories: list[DirIdentifiers], main: Path, auxiliary: list[Path]
    ) -> LinkJob:
        objects = [self.work_dir / f"{doc.stem}.wixobj" for doc in (main, *auxiliary)]
        objects += [self.fragment_object(ids) for ids in directories]
        return LinkJob(objects=objects, extensions=list(LINK_EXTENSIONS), out_artifact=f"{main.stem}.msi")

    def plan(
        self, directories: list[DirIdentifiers], main: Path, auxiliary: list[Path]
    ) -> list[PhasePlan]:
        documents = {doc.stem.lower() for doc in (main, *auxiliary)}
        for ids in directories:
            if ids.base_name.lower() in documents:
                raise ConfigurationError(
                    f"Directory {ids.base_name!r} would overwrite the {ids.base_name}.wxs document. "
                    "Use another alias."
                )
        return [
            PhasePlan(Phase.HARVEST, self.harvest_jobs(directories)),
            PhasePlan(Phase.COMPILE_FRAGMENTS, self.fragment_compile_jobs(directories)),
            PhasePlan(Phase.COMPILE_MAIN, [self.main_compile_job(main, auxiliary)]),
            PhasePlan(Phase.LINK, [self.link_job(directories, main, auxiliary)]),
        ]

    # -- execution ---------------------------------------------------------

    def run_job(self, job: ToolchainJob) -> None:
        match job:
            case HarvestJob():
                logger.info(f"Harvesting {job.identifiers.base_name}")
                self.tools.call("heat", self.tools.harvest_args(job), self.work_dir)
                self._expect(job.out_fragment, "heat")
            case CompileJob():
                self.tools.call("candle", self.tools.compile_args(job), self.work_dir)
                for obj in job.objects:
                    self._expect(obj if obj.is_absolute() else self.work_dir / obj, "candle")
            case LinkJob():
                self.tools.call("light", self.tools.link_args(job), self.work_dir)
                self._expect(self.work_dir / job.out_artifact, "light")

    def run(
        self,
        model: AuthoringModel,
        output_dir: Path,
        keep_wxs: bool = False,
        keep_dir: Path | None = None,
    ) -> Path:
        """Write documents, run every phase and move the artifact to output_dir."""
        main, auxiliary = self.write_documents(model)
        phases = self.plan(model.directories, main, auxiliary)
        for plan in phases:
            if plan.phase is Phase.COMPILE_FRAGMENTS:
                if keep_wxs:
                    self._keep_documents(model.directories, main, auxiliary, keep_dir or Path.cwd())
                logger.info("Compiling WiX components...")
            elif plan.phase is Phase.LINK:
                logger.info("Producing final msi...")
            for job in plan.jobs:
                self.run_job(job)
        return self._finish(f"{main.stem}.msi", output_dir)

    def _keep_documents(
        self, directories: list[DirIdentifiers], main: Path, auxiliary: list[Path], keep_dir: Path
    ) -> None:
        keep_dir.mkdir(parents=True, exist_ok=True)
        for doc in [main, *auxiliary, *(self.fragment(ids) for ids in directories)]:
            shutil.copy2(doc, keep_dir / doc.name)
            logger.info(f"Kept {doc.name} in {keep_dir}")

    def _finish(self, artifact: str, output_dir: Path) -> Path:
        pdb = (self.work_dir / artifact).with_suffix(".wixpdb")
        pdb.unlink(missing_ok=True)
        output_dir.mkdir(parents=True, exist_ok=True)
        destination = output_dir / artifact
        shutil.move(self.work_dir / artifact, destination)
        logger.info(f"✅ Installer written to {destination}")
        return destination

    @staticmethod
    def _expect(path: Path, tool: str) -> None:
        if not path.exists():
            raise NotFoundError(f"{tool} did not produce {path}")
