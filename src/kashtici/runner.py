# runner.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .events import Event
from .executor import Executor
from .model import JobResult, JobSpec, Pipeline, RunResult, StageResult
from .router import EventRouter
from .ui.console import get_console

# Characters of failed-job log kept in a failure summary.
ERROR_TAIL = 300


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class StageFailure(Exception):
    stage_index: int
    failed_job_names: List[str]
    underlying_errors: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        jobs = ", ".join(self.failed_job_names)
        msg = f"stage {self.stage_index + 1} failed: {jobs}"
        if self.underlying_errors:
            msg += " (" + "; ".join(self.underlying_errors) + ")"
        return msg


def _error_tail(result: JobResult) -> str:
    lines = [line.strip() for line in result.log_text.splitlines() if line.strip()]
    if not lines:
        return f"exit status {result.exit_status}"
    return lines[-1][-ERROR_TAIL:]


def check_stage(stage: StageResult) -> None:
    """Raise StageFailure if any job of the stage failed."""
    failed = stage.failed_job_names
    if failed:
        raise StageFailure(
            stage_index=stage.index,
            failed_job_names=failed,
            underlying_errors=[f"{name}: {_error_tail(stage.results[name])}" for name in failed],
        )


def failure_summary(failures: List[StageFailure]) -> Optional[str]:
    if not failures:
        return None
    return "; ".join(str(f) for f in failures)


# ----------------------------------------------------------------------
# Runner
# ----------------------------------------------------------------------

class PipelineRunner:
    """
    Executes a Pipeline through an Executor.

    Stages run in order and the jobs of one stage run concurrently. The
    first failing stage stops the run (jobs already in flight finish)
    unless the pipeline is marked run_all_independent. Job failures never
    escape run(); they end up in the RunResult and in the single terminal
    notification.
    """

    def __init__(self, executor: Executor, max_workers: Optional[int] = None):
        self.executor = executor
        self.max_workers = max_workers

    def run(self, pipeline: Pipeline) -> RunResult:
        if pipeline.run_all_independent:
            stage_results, failures = self._run_independent(pipeline)
        else:
            stage_results, failures = self._run_sequential(pipeline)

        succeeded = not failures
        result = RunResult(succeeded=succeeded, stage_results=stage_results, failures=failures)

        if pipeline.terminal is not None:
            result.notification, result.notification_result = self._notify(
                pipeline, succeeded, failure_summary(failures)
            )
        return result

    def _dispatch(self, jobs: List[JobSpec]) -> Dict[str, JobResult]:
        try:
            return self.executor.execute_batch(jobs, max_workers=self.max_workers)
        except Exception as e:
            # Whole-batch failure: every job in it counts as failed.
            get_console().print_failure("executor", str(e))
            return {job.name: JobResult(exit_status=-1, log_text=f"{type(e).__name__}: {e}") for job in jobs}

    def _report(self, results: Dict[str, JobResult]) -> None:
        console = get_console()
        for name, r in results.items():
            console.print_job_result(name, r.succeeded, r.exit_status)
            if not r.succeeded and r.log_text:
                console.print_debug(r.log_text)

    def _run_sequential(self, pipeline: Pipeline) -> Tuple[List[StageResult], List[StageFailure]]:
        console = get_console()
        stage_results: List[StageResult] = []
        failures: List[StageFailure] = []

        for index, stage in enumerate(pipeline.stages):
            names = [j.name for j in stage]
            if failures:
                console.print_stage_skipped(index, f"stage {failures[0].stage_index + 1} failed")
                stage_results.append(StageResult(index=index, job_names=names, skipped=True))
                continue

            console.print_stage_started(index, names)
            results = self._dispatch(list(stage))
            self._report(results)

            stage_result = StageResult(index=index, job_names=names, results=results)
            stage_results.append(stage_result)
            try:
                check_stage(stage_result)
            except StageFailure as e:
                console.print_failure(f"stage {index + 1}", str(e))
                failures.append(e)

        return stage_results, failures

    def _run_independent(self, pipeline: Pipeline) -> Tuple[List[StageResult], List[StageFailure]]:
        console = get_console()
        all_jobs = list(pipeline.jobs())
        console.print_stage_started(0, [j.name for j in all_jobs])
        results = self._dispatch(all_jobs)
        self._report(results)

        stage_results: List[StageResult] = []
        failures: List[StageFailure] = []
        for index, stage in enumerate(pipeline.stages):
            names = [j.name for j in stage]
            stage_result = StageResult(
                index=index,
                job_names=names,
                results={name: results[name] for name in names},
            )
            stage_results.append(stage_result)
            try:
                check_stage(stage_result)
            except StageFailure as e:
                failures.append(e)

        if failures:
            console.print_failure("pipeline", failure_summary(failures))
        return stage_results, failures

    def _notify(
        self,
        pipeline: Pipeline,
        succeeded: bool,
        summary: Optional[str],
    ) -> Tuple[JobSpec, JobResult]:
        """Issue the terminal notification. Called exactly once per run."""
        console = get_console()
        job = pipeline.terminal.for_outcome(succeeded, summary)
        console.print_notification(job.name, "success" if succeeded else "failure")

        # Same conversion as a batch: the notification outcome is recorded, never raised.
        result = self._dispatch([job])[job.name]
        if not result.succeeded:
            console.print_failure(f"notification {job.name}", result.log_text)
        return job, result


# ----------------------------------------------------------------------
# Driver
# ----------------------------------------------------------------------

def run_event(event: Event, router: EventRouter, runner: PipelineRunner) -> RunResult:
    """
    Route an event and run the resulting pipeline.

    MalformedEventError from routing propagates: nothing is run and no
    notification is sent.
    """
    console = get_console()
    pipeline = router.route(event)
    if pipeline.is_empty:
        console.print_info(f"no jobs for event {event.type!r}")
        return RunResult(succeeded=True)

    return run_pipeline(event, pipeline, runner, repository=router.config.repo_name)


def run_pipeline(event: Event, pipeline: Pipeline, runner: PipelineRunner, *, repository: str) -> RunResult:
    """Run an already-routed pipeline, reporting start and per-job results."""
    console = get_console()
    console.print_run_started(
        repository=repository,
        event=event.type,
        build_id=event.build_id,
        job_count=len(list(pipeline.jobs())),
    )
    result = runner.run(pipeline)
    console.print_results(result.status_by_job())
    return result
