# src/kashtici/dsl.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .config import ProjectConfig
from .model import JobKind, JobSpec, Notification, Pipeline, Stage, TerminalNotifier


# ---------------------------------------------------------------------
# Job constructors
# ---------------------------------------------------------------------

def test_job(config: ProjectConfig, name: str) -> JobSpec:
    """Lint and unit tests."""
    return JobSpec(
        name=name,
        image=config.node_image,
        tasks=(
            f"cd {config.source_dir}",
            "yarn install",
            "ng lint",
            "ng test --single-run",
        ),
    )


def e2e_job(config: ProjectConfig, name: str) -> JobSpec:
    return JobSpec(
        name=name,
        image=config.node_image,
        tasks=(
            f"cd {config.source_dir}",
            "yarn install",
            "ng e2e",
        ),
    )


def build_job(config: ProjectConfig, name: str, tag: str, *, image: Optional[str] = None) -> JobSpec:
    """
    Build and push `<image>:<tag>` with `az acr build`.

    The registry credentials are read by the shell from the job environment,
    so they never appear in the task strings.
    """
    img = image or config.project_name
    img_name = f"{img}:{tag}"
    return JobSpec(
        name=name,
        image=config.build_image,
        env={
            "AZURE_CONTAINER_REGISTRY": config.registry,
            "ACR_TOKEN": config.registry_token,
            "ACR_TENANT": config.registry_tenant,
        },
        tasks=(
            "az login --service-principal -u $AZURE_CONTAINER_REGISTRY -p $ACR_TOKEN --tenant $ACR_TENANT",
            f"cd {config.source_dir}",
            f"echo '========> building {img}...'",
            f"az acr build -r {config.registry} -t {img_name} .",
            f"echo '<======== finished building {img}.'",
        ),
        labels={"image": img, "tag": tag},
    )


def notify_job(
    notification: Notification,
    name: Optional[str] = None,
    *,
    image: str = "technosophos/github-notify:latest",
) -> JobSpec:
    """GitHub commit-status job."""
    return JobSpec(
        name=name or f"notify-{notification.state.value}",
        image=image,
        env=notification.env(),
        kind=JobKind.NOTIFICATION,
    )


def check_run_job(
    config: ProjectConfig,
    name: str,
    notification: Notification,
    payload_text: str,
    summary: str,
    conclusion: Optional[str] = None,
    text: Optional[str] = None,
) -> JobSpec:
    """GitHub check-run job. The check-run image reads the raw webhook payload from CHECK_PAYLOAD."""
    env = notification.env()
    env.update({
        "CHECK_PAYLOAD": payload_text,
        "CHECK_NAME": config.check_name,
        "CHECK_TITLE": config.check_title,
        "CHECK_SUMMARY": summary,
    })
    if conclusion is not None:
        env["CHECK_CONCLUSION"] = conclusion
    if text is not None:
        env["CHECK_TEXT"] = text
    return JobSpec(
        name=name,
        image=config.check_run_image,
        env=env,
        kind=JobKind.NOTIFICATION,
        image_force_pull=True,
    )


# ---------------------------------------------------------------------
# Pipeline builder
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineBuilder:
    """
    Immutable pipeline builder: every method returns a new builder.

        pipeline = (
            PipelineBuilder()
            .stage(pending)
            .stage(release, latest)
            .finally_notify(notifier)
            .build()
        )
    """
    stages: Tuple[Stage, ...] = ()
    terminal: Optional[TerminalNotifier] = None
    independent: bool = False

    def stage(self, *jobs: JobSpec) -> PipelineBuilder:
        if not jobs:
            raise ValueError("stage() needs at least one job")
        return replace(self, stages=self.stages + (tuple(jobs),))

    def finally_notify(self, notifier: Optional[TerminalNotifier]) -> PipelineBuilder:
        return replace(self, terminal=notifier)

    def run_all_independent(self, enabled: bool = True) -> PipelineBuilder:
        return replace(self, independent=enabled)

    def build(self) -> Pipeline:
        return Pipeline(
            stages=self.stages,
            terminal=self.terminal,
            run_all_independent=self.independent,
        )


def pipeline() -> PipelineBuilder:
    """Convenience: pipeline().stage(...).build()"""
    return PipelineBuilder()
