from .config import ProjectConfig
from .dsl import PipelineBuilder, build_job, check_run_job, e2e_job, notify_job, pipeline, test_job
from .events import Event, EventType, MalformedEventError, Revision
from .executor import DockerExecutor, DryRunExecutor, Executor, ExecutorError
from .model import JobKind, JobResult, JobSpec, Notification, NotificationState, Pipeline, RunResult, StageResult
from .router import EventRouter, route
from .runner import PipelineRunner, StageFailure, run_event, run_pipeline

__all__ = [
    "ProjectConfig",
    "PipelineBuilder", "build_job", "check_run_job", "e2e_job", "notify_job", "pipeline", "test_job",
    "Event", "EventType", "MalformedEventError", "Revision",
    "DockerExecutor", "DryRunExecutor", "Executor", "ExecutorError",
    "JobKind", "JobResult", "JobSpec", "Notification", "NotificationState", "Pipeline", "RunResult", "StageResult",
    "EventRouter", "route",
    "PipelineRunner", "StageFailure", "run_event", "run_pipeline",
]
