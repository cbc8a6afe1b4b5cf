# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Protocol, Tuple


class JobKind(str, Enum):
    JOB = "job"
    NOTIFICATION = "notification"


class NotificationState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


def _frozen(mapping: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType({str(k): str(v) for k, v in (mapping or {}).items()})


@dataclass(frozen=True)
class JobSpec:
    """
    A unit of containerized work: an image plus shell tasks run in order.

    `env` and `labels` are stored as read-only copies, so a JobSpec can be
    shared between pipelines without anyone mutating it underneath.
    """
    name: str
    image: str
    tasks: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    kind: JobKind = JobKind.JOB
    labels: Mapping[str, str] = field(default_factory=dict, hash=False)
    image_force_pull: bool = False

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("JobSpec name must be non-empty")
        if not self.image:
            raise ValueError(f"JobSpec '{self.name}' has no image")
        object.__setattr__(self, "kind", JobKind(self.kind))
        object.__setattr__(self, "tasks", tuple(self.tasks))
        object.__setattr__(self, "env", _frozen(self.env))
        object.__setattr__(self, "labels", _frozen(self.labels))

    @property
    def is_notification(self) -> bool:
        return self.kind is JobKind.NOTIFICATION

    @property
    def tag(self) -> Optional[str]:
        """Image tag produced by a build job, if any."""
        return self.labels.get("tag")

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "image": self.image,
            "kind": self.kind.value,
            "tasks": list(self.tasks),
            "env": dict(self.env),
        }
        if self.labels:
            data["labels"] = dict(self.labels)
        if self.image_force_pull:
            data["image_force_pull"] = True
        return data


@dataclass(frozen=True)
class Notification:
    """Fields a status report needs. Token and description are passed through untouched."""
    repo: str
    state: NotificationState
    description: str
    context: str
    token: str
    commit: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "state", NotificationState(self.state))
        missing = [k for k in ("repo", "context", "commit") if not getattr(self, k)]
        if missing:
            raise ValueError(f"Notification is missing required fields: {missing}")

    def env(self) -> Dict[str, str]:
        return {
            "GH_REPO": self.repo,
            "GH_STATE": self.state.value,
            "GH_DESCRIPTION": self.description,
            "GH_CONTEXT": self.context,
            "GH_TOKEN": self.token,
            "GH_COMMIT": self.commit,
        }


class TerminalNotifier(Protocol):
    """Builds the single notification issued at the end of a run."""

    def for_outcome(self, succeeded: bool, summary: Optional[str] = None) -> JobSpec:
        ...


Stage = Tuple[JobSpec, ...]


@dataclass(frozen=True)
class Pipeline:
    """
    Ordered stages of concurrently-run jobs, plus an optional terminal notifier.

    Job names must be unique across the whole pipeline.
    """
    stages: Tuple[Stage, ...] = ()
    terminal: Optional[TerminalNotifier] = None
    run_all_independent: bool = False

    def __post_init__(self) -> None:
        stages = tuple(tuple(stage) for stage in self.stages if stage)
        object.__setattr__(self, "stages", stages)

        names = [j.name for stage in stages for j in stage]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate job names found: {dupes}")

    @classmethod
    def empty(cls) -> "Pipeline":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.stages and self.terminal is None

    def jobs(self) -> Iterator[JobSpec]:
        for stage in self.stages:
            yield from stage

    def to_dict(self) -> dict:
        return {
            "stages": [[j.to_dict() for j in stage] for stage in self.stages],
            "terminal": type(self.terminal).__name__ if self.terminal else None,
            "run_all_independent": self.run_all_independent,
        }


@dataclass(frozen=True)
class JobResult:
    exit_status: int
    log_text: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0


@dataclass
class StageResult:
    index: int
    job_names: List[str] = field(default_factory=list)
    results: Dict[str, JobResult] = field(default_factory=dict)
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.skipped and all(r.succeeded for r in self.results.values())

    @property
    def failed_job_names(self) -> List[str]:
        return [name for name, r in self.results.items() if not r.succeeded]


@dataclass
class RunResult:
    """Outcome of one PipelineRunner.run call."""
    succeeded: bool
    stage_results: List[StageResult] = field(default_factory=list)
    failures: list = field(default_factory=list)  # StageFailure instances
    notification: Optional[JobSpec] = None
    notification_result: Optional[JobResult] = None

    def status_by_job(self) -> Dict[str, str]:
        """Flat job -> status map, the shape Console.print_results expects."""
        out: Dict[str, str] = {}
        for stage in self.stage_results:
            if stage.skipped:
                out.update({name: "skipped" for name in stage.job_names})
                continue
            for name, r in stage.results.items():
                out[name] = "ok" if r.succeeded else "failed"
        if self.notification is not None and self.notification_result is not None:
            out[self.notification.name] = "ok" if self.notification_result.succeeded else "failed"
        return out
