# notify.py
# Terminal notifiers: each builds the one notification job a run ends with.
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import ProjectConfig
from .dsl import check_run_job, notify_job
from .model import JobSpec, Notification, NotificationState

# GitHub rejects commit status descriptions longer than this.
STATUS_DESCRIPTION_LIMIT = 140

@dataclass(frozen=True)
class StatusNotifier:
    """Commit status (`notify-success` / `notify-failure`)."""
    repo: str
    context: str
    token: str
    commit: str
    success_description: str
    failure_description: str
    image: str = "technosophos/github-notify:latest"

    def for_outcome(self, succeeded: bool, summary: Optional[str] = None) -> JobSpec:
        if succeeded:
            state, description = NotificationState.SUCCESS, self.success_description
        else:
            state, description = NotificationState.FAILURE, self.failure_description
            if summary:
                description = f"{description}: {summary}"
        if len(description) > STATUS_DESCRIPTION_LIMIT:
            description = description[:STATUS_DESCRIPTION_LIMIT - 3] + "..."
        notification = Notification(
            repo=self.repo,
            state=state,
            description=description,
            context=self.context,
            token=self.token,
            commit=self.commit,
        )
        return notify_job(notification, image=self.image)


@dataclass(frozen=True)
class CheckRunNotifier:
    """End-of-run GitHub check run carrying the conclusion of the test stage."""
    config: ProjectConfig
    commit: str
    payload_text: str
    name: str = "end-run"

    def for_outcome(self, succeeded: bool, summary: Optional[str] = None) -> JobSpec:
        state = NotificationState.SUCCESS if succeeded else NotificationState.FAILURE
        notification = Notification(
            repo=self.config.repo_name,
            state=state,
            description="Build completed" if succeeded else "Build failed",
            context=self.config.notify_context,
            token=self.config.github_token,
            commit=self.commit,
        )
        if succeeded:
            text = summary or "All jobs passed"
        else:
            text = f"Error: {summary}" if summary else "Error: build failed"
        return check_run_job(
            self.config,
            self.name,
            notification,
            self.payload_text,
            summary=notification.description,
            conclusion=state.value,
            text=text,
        )
