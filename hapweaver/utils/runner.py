#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Resumable step runner.

A step declares the artifact it produces. If the artifact already exists the
step is skipped; otherwise its command runs with output captured to a
per-step log. Outputs are written to a staging path first and only moved
onto the declared path after the command exits 0 and the output passes a
format sanity check, so the declared path never holds a partial file.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import contextlib
import logging
import os
import shlex
import shutil
import subprocess
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from .artifacts import staging_dir, staging_file
from .context import RunContext

logger = logging.getLogger(__name__)

EXIT_LAUNCH_FAILURE = 127
EXIT_SIGNAL_BASE = 128
LOG_TAIL_LINES = 20

GZIP_MAGIC = b'\x1f\x8b'

FORMAT_SUFFIXES = {
    '.fa': 'fasta',
    '.fasta': 'fasta',
    '.fna': 'fasta',
    '.fastq': 'fastq',
    '.fq': 'fastq',
    '.gz': 'gzip',
    '.bgz': 'gzip',
    '.bam': 'gzip',
    '.gff': 'gff',
    '.gff3': 'gff',
}


# ============================================================================
# Commands
# ============================================================================

@dataclass
class Command:
    """
    An external command, optionally a pipeline of several processes.

    Attributes:
        pipeline: One argv list per pipeline member, in order
        stdout: File receiving the last member's stdout (shell ``>``)
        cwd: Working directory for every member
    """
    pipeline: List[List[str]]
    stdout: Optional[Path] = None
    cwd: Optional[Path] = None

    @classmethod
    def of(cls, *argv, stdout: Optional[Path] = None, cwd: Optional[Path] = None) -> 'Command':
        return cls([[str(a) for a in argv]], stdout=stdout, cwd=cwd)

    def pipe(self, *argv) -> 'Command':
        """Return a new command with ``argv`` appended as the next pipeline member."""
        return Command(self.pipeline + [[str(a) for a in argv]], stdout=self.stdout, cwd=self.cwd)

    def __str__(self) -> str:
        text = ' | '.join(' '.join(shlex.quote(a) for a in argv) for argv in self.pipeline)
        if self.stdout:
            text += f" > {shlex.quote(str(self.stdout))}"
        return text


def pipefail_exit_code(codes: Sequence[int]) -> int:
    """Exit code of a pipeline: the last non-zero member code, else 0."""
    for code in reversed(codes):
        if code != 0:
            return code
    return 0


def normalize_exit_code(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit code (signal N -> 128+N)."""
    if returncode < 0:
        return EXIT_SIGNAL_BASE - returncode
    return returncode


# ============================================================================
# Staging
# ============================================================================

@dataclass
class Staging:
    """
    Where a step writes before its output is committed.

    A file staging holds exactly the declared artifact and is renamed onto it.
    A directory staging holds everything a tool writes into an output
    directory or under an output prefix; on commit its children are moved
    into ``target`` with the declared artifact moved last.
    """
    path: Path
    target: Path
    is_directory: bool = False

    @classmethod
    def file(cls, artifact: Path) -> 'Staging':
        artifact = Path(artifact)
        return cls(staging_file(artifact), artifact)

    @classmethod
    def directory(cls, target: Path, path: Optional[Path] = None) -> 'Staging':
        target = Path(target)
        return cls(Path(path) if path else staging_dir(target), target, is_directory=True)

    def prepare(self):
        """Remove leftovers of an earlier failed attempt and create parents."""
        if self.is_directory:
            if self.path.exists():
                shutil.rmtree(self.path)
            self.path.mkdir(parents=True)
        else:
            if self.path.exists():
                self.path.unlink()
            self.path.parent.mkdir(parents=True, exist_ok=True)

    def staged(self, declared: Path) -> Path:
        """Location of a declared output while it is still staged."""
        if not self.is_directory:
            return self.path
        return self.path / Path(declared).relative_to(self.target)

    def commit(self, artifact: Path):
        if not self.is_directory:
            os.replace(self.path, self.target)
            return

        self.target.mkdir(parents=True, exist_ok=True)
        artifact_top = Path(artifact).relative_to(self.target).parts[0]
        children = sorted(self.path.iterdir(), key=lambda p: p.name == artifact_top)
        for child in children:
            destination = self.target / child.name
            if destination.is_dir() and not destination.is_symlink():
                shutil.rmtree(destination)
            elif destination.exists() or destination.is_symlink():
                destination.unlink()
            os.replace(child, destination)
        self.path.rmdir()


# ============================================================================
# Steps and results
# ============================================================================

@dataclass
class Step:
    """
    One unit of work gated by the existence of its declared artifact.

    Exactly one of ``command`` (external process) or ``action`` (in-process
    callable receiving the path to write) must be given.
    """
    name: str
    artifact: Path
    command: Optional[Command] = None
    action: Optional[Callable[[Path], None]] = None
    staging: Optional[Staging] = None
    companions: List[Path] = field(default_factory=list)
    log_mode: str = 'a'
    fmt: Optional[str] = None

    def __post_init__(self):
        self.artifact = Path(self.artifact)
        self.companions = [Path(p) for p in self.companions]
        if (self.command is None) == (self.action is None):
            raise ValueError(f"Step {self.name} needs exactly one of command or action")
        if self.log_mode not in ('a', 'w'):
            raise ValueError(f"Invalid log mode for step {self.name}: {self.log_mode}")


class StepStatus(Enum):
    SKIPPED = 'skipped'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    MISSING_OUTPUT = 'missing_output'


@dataclass
class StepResult:
    """Outcome of running (or skipping) one step."""
    step: str
    status: StepStatus
    exit_code: int
    log_path: Optional[Path]
    artifact: Path
    message: str = ''

    @property
    def success(self) -> bool:
        return self.status in (StepStatus.SKIPPED, StepStatus.SUCCEEDED)

    def to_dict(self) -> Dict[str, object]:
        return {
            'step': self.step,
            'status': self.status.value,
            'exit_code': self.exit_code,
            'log_path': str(self.log_path) if self.log_path else None,
            'artifact': str(self.artifact),
            'message': self.message,
        }


# ============================================================================
# Output sanity checks
# ============================================================================

def detect_format(path: Path) -> Optional[str]:
    return FORMAT_SUFFIXES.get(Path(path).suffix.lower())


def check_artifact(path: Path, fmt: Optional[str] = None) -> Optional[str]:
    """
    Check that an output looks like what it claims to be.

    Returns:
        None if the file passes, otherwise a short description of the problem
    """
    path = Path(path)
    if not path.is_file():
        return f"{path} was not produced"
    if path.stat().st_size == 0:
        return f"{path} is empty"

    fmt = fmt or detect_format(path)
    with open(path, 'rb') as handle:
        head = handle.read(4096)

    if fmt == 'fasta' and not head.startswith(b'>'):
        return f"{path} does not start with a FASTA header"
    if fmt == 'fastq' and not head.startswith(b'@'):
        return f"{path} does not start with a FASTQ record"
    if fmt == 'gzip' and not head.startswith(GZIP_MAGIC):
        return f"{path} is not gzip/BGZF compressed"
    if fmt == 'gff':
        first = head.split(b'\n', 1)[0]
        if not (first.startswith(b'#') or len(first.split(b'\t')) == 9):
            return f"{path} does not look like GFF"
    return None


def read_log_tail(log_path: Path, lines: int = LOG_TAIL_LINES) -> List[str]:
    if not log_path or not Path(log_path).is_file():
        return []
    with open(log_path, 'r', errors='replace') as handle:
        return [line.rstrip('\n') for line in deque(handle, maxlen=lines)]


# ============================================================================
# Runner
# ============================================================================

class StepRunner:
    """
    Run steps with skip-if-present semantics and two-phase output commit.

    Args:
        context: Run context supplying the tool environment and log directory
    """

    def __init__(self, context: Optional[RunContext] = None):
        self.context = context or RunContext()
        self.logger = logging.getLogger(__name__)

    def log_path_for(self, step: Step) -> Path:
        log_dir = self.context.log_dir or (step.artifact.parent / 'logs')
        return Path(log_dir) / f"{step.name}.log"

    def run(self, step: Step) -> StepResult:
        log_path = self.log_path_for(step)

        if step.artifact.exists():
            self.logger.info(f"⏭️  {step.name}: {step.artifact} already exists, skipping")
            return StepResult(step.name, StepStatus.SKIPPED, 0, None, step.artifact,
                              'artifact already present')

        try:
            return self._attempt(step, log_path)
        except OSError as e:
            message = f"{step.name} could not be run: {e}"
            try:
                message += self._quarantine(step)
            except OSError as cleanup_error:
                self.logger.error(f"Could not move aside {step.artifact}: {cleanup_error}")
            return self._failed(step, StepStatus.FAILED, 1, log_path, message)

    def _attempt(self, step: Step, log_path: Path) -> StepResult:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        if step.staging:
            step.staging.prepare()
            output = step.staging.staged(step.artifact)
        else:
            step.artifact.parent.mkdir(parents=True, exist_ok=True)
            output = step.artifact

        self.logger.info(f"▶️  {step.name}")
        if step.command is not None:
            self.logger.debug(f"   $ {step.command}")
            exit_code = self.execute(step.command, log_path, step.log_mode)
        else:
            exit_code = self._perform(step, output, log_path)

        if exit_code != 0:
            message = f"{step.name} failed with exit code {exit_code}"
            return self._failed(step, StepStatus.FAILED, exit_code, log_path,
                                message + self._quarantine(step))

        problem = self._verify(step, output)
        if problem:
            return self._failed(step, StepStatus.MISSING_OUTPUT, 1, log_path,
                                f"{step.name} exited 0 but {problem}" + self._quarantine(step))

        if step.staging:
            step.staging.commit(step.artifact)

        self.logger.info(f"✅ {step.name}: {step.artifact}")
        return StepResult(step.name, StepStatus.SUCCEEDED, 0, log_path, step.artifact, 'completed')

    def _quarantine(self, step: Step) -> str:
        """Move an in-place artifact left by a failed step to ``<name>.invalid``."""
        if step.staging or not step.artifact.exists():
            return ''
        invalid = step.artifact.with_name(step.artifact.name + '.invalid')
        if invalid.is_dir():
            shutil.rmtree(invalid)
        os.replace(step.artifact, invalid)
        return f" (moved to {invalid})"

    def execute(self, command: Command, log_path: Path, log_mode: str = 'a') -> int:
        """
        Run a command (or pipeline) with stdout/stderr sent to ``log_path``.

        Returns:
            Exit code with pipefail semantics; 127 if a member cannot be launched
        """
        env = self.context.tools.env()
        processes: List[subprocess.Popen] = []

        with contextlib.ExitStack() as stack:
            log = stack.enter_context(open(log_path, log_mode + 'b'))
            log.write(f"$ {command}\n".encode())
            log.flush()

            final_stdout = log
            if command.stdout:
                final_stdout = stack.enter_context(open(command.stdout, 'wb'))

            upstream = None
            try:
                for index, argv in enumerate(command.pipeline):
                    is_last = index == len(command.pipeline) - 1
                    process = subprocess.Popen(
                        argv,
                        stdin=upstream,
                        stdout=final_stdout if is_last else subprocess.PIPE,
                        stderr=log,
                        cwd=str(command.cwd) if command.cwd else None,
                        env=env,
                    )
                    if upstream is not None:
                        upstream.close()
                    upstream = process.stdout
                    processes.append(process)
            except OSError as e:
                log.write(f"Failed to launch {argv[0]}: {e}\n".encode())
                self.logger.error(f"Failed to launch {argv[0]}: {e}")
                if upstream is not None:
                    upstream.close()
                for process in processes:
                    process.kill()
                    process.wait()
                return EXIT_LAUNCH_FAILURE

            codes = [normalize_exit_code(process.wait()) for process in processes]

        return pipefail_exit_code(codes)

    def _perform(self, step: Step, output: Path, log_path: Path) -> int:
        with open(log_path, step.log_mode) as log:
            log.write(f"# {step.name}: writing {output}\n")
            try:
                step.action(output)
            except (OSError, ValueError) as e:
                log.write(f"{type(e).__name__}: {e}\n")
                self.logger.error(f"{step.name}: {e}")
                return 1
        return 0

    def _verify(self, step: Step, output: Path) -> Optional[str]:
        if not self.context.verify_outputs:
            return None if output.exists() else f"{output} was not produced"

        problem = check_artifact(output, step.fmt)
        if problem:
            return problem
        for companion in step.companions:
            staged = step.staging.staged(companion) if step.staging else companion
            problem = check_artifact(staged)
            if problem:
                return problem
        return None

    def _failed(self, step: Step, status: StepStatus, exit_code: int,
                log_path: Path, message: str) -> StepResult:
        self.logger.error(f"❌ {message}")
        self.logger.error(f"   Log: {log_path}")
        for line in read_log_tail(log_path):
            self.logger.error(f"   | {line}")
        return StepResult(step.name, status, exit_code, log_path, step.artifact, message)


def run_step(declared_artifact: Union[str, Path], command: Command,
             runner: Optional[StepRunner] = None, name: Optional[str] = None,
             staged: bool = False) -> StepResult:
    """
    Run ``command`` unless ``declared_artifact`` already exists.

    Args:
        declared_artifact: Output whose presence marks the step as done
        command: Command to run when the artifact is absent
        runner: Runner to use (a default one logging next to the artifact otherwise)
        name: Step name used for the log file
        staged: Whether ``command`` writes to the file staging path instead

    Returns:
        StepResult describing what happened
    """
    artifact = Path(declared_artifact)
    step = Step(
        name=name or artifact.stem,
        artifact=artifact,
        command=command,
        staging=Staging.file(artifact) if staged else None,
    )
    return (runner or StepRunner()).run(step)

# HapWeaver v0.1.0
# Any usage is subject to this software's license.
