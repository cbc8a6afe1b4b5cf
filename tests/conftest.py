from __future__ import annotations

import threading
from typing import Dict, List, Optional

import pytest

from kashtici.config import ProjectConfig
from kashtici.events import Event, Revision
from kashtici.executor import Executor, ExecutorError
from kashtici.model import JobResult, JobSpec
from kashtici.ui.console import Console, set_console


class ScriptedExecutor(Executor):
    """Records every dispatched job; returns scripted results (success by default)."""

    def __init__(self, results: Optional[Dict[str, JobResult]] = None, errors: Optional[Dict[str, str]] = None):
        self.results = results or {}
        self.errors = errors or {}
        self.executed: List[JobSpec] = []
        self._lock = threading.Lock()

    def execute(self, job: JobSpec) -> JobResult:
        with self._lock:
            self.executed.append(job)
        if job.name in self.errors:
            raise ExecutorError(self.errors[job.name])
        return self.results.get(job.name, JobResult(exit_status=0, log_text=f"{job.name} ok"))

    @property
    def names(self) -> List[str]:
        return [j.name for j in self.executed]

    def notifications(self) -> List[JobSpec]:
        return [j for j in self.executed if j.is_notification]


@pytest.fixture(autouse=True)
def fresh_console():
    set_console(Console())
    yield


@pytest.fixture
def config() -> ProjectConfig:
    return ProjectConfig(
        repo_name="Azure/kashti",
        registry="kashtireg",
        registry_token="acr-secret",
        registry_tenant="tenant-1",
        github_token="gh-secret",
    )


@pytest.fixture
def tag_push() -> Event:
    return Event(
        type="push",
        payload='{"ref": "refs/tags/v1.2.0"}',
        build_id="01build",
        revision=Revision(commit="0123456789abcdef", ref="refs/tags/v1.2.0"),
    )


@pytest.fixture
def check_event() -> Event:
    return Event(
        type="check_suite:requested",
        payload={"body": {"check_suite": {"head_sha": "abcdef1234567"}}},
        build_id="02build",
        revision=Revision(commit="abcdef1234567"),
    )
