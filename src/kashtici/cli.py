# cli.py
from __future__ import annotations

import json
import subprocess
import sys
import uuid

import click

from kashtici.config import ProjectConfig
from kashtici.events import Event, EventType, MalformedEventError, Revision
from kashtici.executor import DockerExecutor, DryRunExecutor, Executor
from kashtici.git import current_ref, head_sha
from kashtici.model import Pipeline
from kashtici.router import EventRouter
from kashtici.runner import PipelineRunner, run_event
from kashtici.ui.console import Console, get_console, set_console


def load_event(stream) -> Event:
    """Read an event object ({type, payload, buildID, revision}) from a JSON stream."""
    try:
        data = json.load(stream)
    except json.JSONDecodeError as e:
        raise MalformedEventError(f"Event file is not valid JSON: {e}") from e
    return Event.from_dict(data)


def _config(repo: str | None) -> ProjectConfig:
    try:
        config = ProjectConfig.from_env()
        if repo:
            config = config.replace(repo_name=repo)
    except ValueError as e:
        get_console().print_error("Invalid configuration", str(e))
        sys.exit(1)
    return config


def _executor(dry_run: bool, workspace: str, config: ProjectConfig) -> Executor:
    if dry_run:
        return DryRunExecutor()
    return DockerExecutor(workspace=workspace, source_dir=config.source_dir)


def print_plan(pipeline: Pipeline) -> None:
    console = get_console()
    if pipeline.is_empty:
        console.print_info("No jobs.")
        return
    mode = "independent" if pipeline.run_all_independent else "sequential"
    console.print_header(f"PIPELINE ({mode})")
    for index, stage in enumerate(pipeline.stages):
        console.print_info(f"Stage {index + 1}:")
        for job in stage:
            extra = f" tag={job.tag}" if job.tag else ""
            console.print_info(f"  {job.name} [{job.kind.value}] {job.image}{extra}")
    if pipeline.terminal is not None:
        ok = pipeline.terminal.for_outcome(True)
        console.print_info(f"Finally: {ok.name} ({type(pipeline.terminal).__name__})")


def _execute(event: Event, config: ProjectConfig, dry_run, workspace, workers, run_all_independent) -> None:
    console = get_console()
    router = EventRouter(config, run_all_independent=run_all_independent)
    runner = PipelineRunner(_executor(dry_run, workspace, config), max_workers=workers)

    try:
        result = run_event(event, router, runner)
    except MalformedEventError as e:
        console.print_error("Malformed event", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    if not result.succeeded:
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """kashti-ci: route CI events to container jobs and report status to GitHub."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("event_file", type=click.File("r"))
@click.option("--repo", default=None, help="GitHub repository (owner/name); defaults to $KASHTI_REPO")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the pipeline as JSON")
@click.pass_context
def route(ctx, event_file, repo, as_json):
    """Show the pipeline an event would run."""
    console = get_console()
    try:
        event = load_event(event_file)
        pipeline = EventRouter(_config(repo)).route(event)
    except MalformedEventError as e:
        console.print_error("Malformed event", str(e))
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(pipeline.to_dict(), indent=2, sort_keys=True))
    else:
        print_plan(pipeline)


@cli.command()
@click.argument("event_file", type=click.File("r"))
@click.option("--repo", default=None, help="GitHub repository (owner/name); defaults to $KASHTI_REPO")
@click.option("--dry-run", is_flag=True, default=False, help="Print jobs instead of running containers")
@click.option("--workspace", default=".", show_default=True, help="Directory mounted as the job source dir")
@click.option("--workers", default=None, type=int, help="Max jobs run in parallel within a stage")
@click.option("--run-all-independent", is_flag=True, default=False, help="Dispatch every stage at once")
@click.pass_context
def run(ctx, event_file, repo, dry_run, workspace, workers, run_all_independent):
    """Route an event and run its pipeline."""
    console = get_console()
    try:
        event = load_event(event_file)
    except MalformedEventError as e:
        console.print_error("Malformed event", str(e))
        sys.exit(2)
    _execute(event, _config(repo), dry_run, workspace, workers, run_all_independent)


@cli.command()
@click.argument("event_type", type=click.Choice([EventType.PUSH.value, EventType.MANUAL.value]))
@click.option("--ref", default=None, help="Ref to report (defaults to the checked-out ref)")
@click.option("--repo", default=None, help="GitHub repository (owner/name); defaults to $KASHTI_REPO")
@click.option("--dry-run", is_flag=True, default=False, help="Print jobs instead of running containers")
@click.option("--workspace", default=".", show_default=True, help="Directory mounted as the job source dir")
@click.option("--workers", default=None, type=int, help="Max jobs run in parallel within a stage")
@click.pass_context
def trigger(ctx, event_type, ref, repo, dry_run, workspace, workers):
    """Run a push or manual event for the local git checkout."""
    console = get_console()
    try:
        commit = head_sha(cwd=workspace)
        ref = ref or current_ref(cwd=workspace)
    except (subprocess.CalledProcessError, FileNotFoundError):
        console.print_error(
            "Could not read git state",
            f"{workspace} is not a git checkout or git is not installed.",
            suggestion="Run from inside the repository, or use:\n  kashti-ci run <event.json>",
        )
        sys.exit(1)

    payload = {"ref": ref, "after": commit} if event_type == EventType.PUSH.value else {}
    event = Event(
        type=event_type,
        payload=payload,
        build_id=f"local-{uuid.uuid4().hex[:8]}",
        revision=Revision(commit=commit, ref=ref),
    )
    console.print_debug(f"synthesized {event_type} event for {ref}@{commit[:7]}")
    _execute(event, _config(repo), dry_run, workspace, workers, False)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
