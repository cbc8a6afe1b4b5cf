# executor.py
from __future__ import annotations

import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .model import JobResult, JobSpec
from .ui.console import get_console


class ExecutorError(Exception):
    """The executor itself could not run a job (daemon missing, backend unreachable)."""


# ---------------------------------------------------------------------
# Executor interface
# ---------------------------------------------------------------------

class Executor:
    """
    Runs JobSpecs somewhere else (containers, a remote runner, ...).

    Subclasses implement execute(). execute_batch() runs a set of jobs
    concurrently and never raises for a single job: errors become failed
    JobResults so the caller can aggregate them.
    """

    def execute(self, job: JobSpec) -> JobResult:
        raise NotImplementedError

    def execute_batch(
        self,
        jobs: Iterable[JobSpec],
        max_workers: Optional[int] = None,
    ) -> Dict[str, JobResult]:
        jobs = list(jobs)
        if not jobs:
            return {}

        results: Dict[str, JobResult] = {}
        with ThreadPoolExecutor(max_workers=max_workers or len(jobs)) as pool:
            futures = {pool.submit(self.execute, job): job.name for job in jobs}

            for future in as_completed(futures):
                job_name = futures[future]
                try:
                    results[job_name] = future.result()
                except Exception as e:
                    get_console().print_debug(f"{job_name}: {type(e).__name__}: {e}")
                    results[job_name] = JobResult(exit_status=-1, log_text=f"{type(e).__name__}: {e}")

        # keep declaration order, not completion order
        return {job.name: results[job.name] for job in jobs}


# ---------------------------------------------------------------------
# Docker
# ---------------------------------------------------------------------

def task_script(job: JobSpec) -> str:
    """Shell script for a job's tasks: run in order, stop at the first failure."""
    return "\n".join(["set -e", *job.tasks])


class DockerExecutor(Executor):
    """Run each job in a throwaway container with the workspace mounted at the source dir."""

    def __init__(self, workspace: str | Path = ".", source_dir: str = "/src", docker: str = "docker"):
        self.workspace = Path(workspace)
        self.source_dir = source_dir
        self.docker = docker
        self._checked = False

    def _check_docker_available(self) -> None:
        """Check if Docker is available, raise helpful error if not."""
        if self._checked:
            return
        try:
            subprocess.run(
                [self.docker, "--version"],
                capture_output=True,
                check=True,
            )
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            raise ExecutorError(
                "Docker is not available. Install Docker and ensure the daemon is running."
            ) from e
        self._checked = True

    def command(self, job: JobSpec) -> List[str]:
        cmd = [self.docker, "run", "--rm"]
        if job.image_force_pull:
            cmd.extend(["--pull", "always"])

        # Volume mount: workspace -> source dir
        cmd.extend(["-v", f"{self.workspace.resolve()}:{self.source_dir}"])
        cmd.extend(["-w", self.source_dir])

        # Only the job's own environment; the host environment is not forwarded.
        for key, value in job.env.items():
            cmd.extend(["-e", f"{key}={value}"])

        cmd.append(job.image)
        cmd.extend(["sh", "-c", task_script(job)])
        return cmd

    def execute(self, job: JobSpec) -> JobResult:
        self._check_docker_available()
        get_console().print_job_start(job.name, job.image)

        try:
            proc = subprocess.run(
                self.command(job),
                shell=False,
                text=True,
                capture_output=True,
            )
        except OSError as e:
            raise ExecutorError(f"could not start container for {job.name}: {e}") from e

        return JobResult(exit_status=proc.returncode, log_text=(proc.stdout or "") + (proc.stderr or ""))


# ---------------------------------------------------------------------
# Dry run
# ---------------------------------------------------------------------

class DryRunExecutor(Executor):
    """Print what would run and report success."""

    def __init__(self):
        self.executed: List[JobSpec] = []

    def execute(self, job: JobSpec) -> JobResult:
        self.executed.append(job)
        console = get_console()
        console.print_job_start(job.name, job.image)
        for task in job.tasks:
            console.print_debug(f"[{job.name}] $ {task}")
        return JobResult(exit_status=0, log_text="dry run")
