# router.py
from __future__ import annotations

from typing import Any, Mapping

from .config import ProjectConfig
from .dsl import PipelineBuilder, build_job, check_run_job, e2e_job, notify_job, test_job
from .events import Event, EventType, MalformedEventError, head_sha, short_sha
from .model import Notification, NotificationState, Pipeline
from .notify import CheckRunNotifier, StatusNotifier
from .ui.console import get_console


class EventRouter:
    """
    Maps an inbound event to a Pipeline.

    Routing never touches an executor: the same event and config always give
    an equal Pipeline.
    """

    def __init__(self, config: ProjectConfig, *, run_all_independent: bool = False):
        self.config = config
        self.run_all_independent = run_all_independent

    def route(self, event: Event) -> Pipeline:
        event_type = event.event_type

        if event_type is EventType.PUSH:
            builder = self._route_push(event)
        elif event_type is not None and event_type.is_check_request:
            builder = self._route_check(event)
        elif event_type is EventType.MANUAL:
            builder = self._route_manual(event)
        else:
            get_console().print_info(f"unhandled event type {event.type!r}; skipping")
            return Pipeline.empty()

        if builder is None:
            return Pipeline.empty()
        return builder.run_all_independent(self.run_all_independent).build()

    # ------------------------------------------------------------------
    # push
    # ------------------------------------------------------------------

    def _route_push(self, event: Event) -> PipelineBuilder | None:
        """Release pushes require a commit (revision.commit or payload 'after'); every status names one."""
        payload = event.parsed_payload()
        ref = payload.get("ref")
        if not isinstance(ref, str) or not ref:
            raise MalformedEventError("Push event payload has no 'ref'")

        if not (ref.startswith("refs/tags/") or ref == self.config.default_branch_ref):
            get_console().print_info(
                f"{ref}: not a tag or a push to {self.config.default_branch_ref}; skipping"
            )
            return None

        commit = event.revision.commit or payload.get("after")
        if not isinstance(commit, str) or not commit:
            raise MalformedEventError("Push event has no revision commit")

        tag = _ref_tag(ref)
        cfg = self.config
        name = cfg.project_name

        start = notify_job(
            self._notification(NotificationState.PENDING, f"build started as {event.build_id}", commit),
            image=cfg.notify_image,
        )
        releaser = build_job(cfg, f"{name}-release", tag)
        latest_releaser = build_job(cfg, f"{name}-release-latest", "latest")

        notifier = StatusNotifier(
            repo=cfg.repo_name,
            context=cfg.notify_context,
            token=cfg.github_token,
            commit=commit,
            success_description=f"build {event.build_id} passed",
            failure_description=f"failed build {event.build_id}",
            image=cfg.notify_image,
        )
        return (
            PipelineBuilder()
            .stage(start)
            .stage(releaser, latest_releaser)
            .finally_notify(notifier)
        )

    # ------------------------------------------------------------------
    # check_suite / check_run
    # ------------------------------------------------------------------

    def _route_check(self, event: Event) -> PipelineBuilder:
        get_console().print_debug(f"check requested: {event.type}")
        payload = event.parsed_payload()
        sha = head_sha(payload)

        cfg = self.config
        name = cfg.project_name
        payload_text = event.payload_text

        start = check_run_job(
            cfg,
            "start-run",
            self._notification(NotificationState.PENDING, "Beginning test run", sha),
            payload_text,
            summary="Beginning test run",
        )
        tester = test_job(cfg, f"{name}-test")
        releaser = build_job(cfg, f"{name}-test-release", f"git-{short_sha(sha)}")

        return (
            PipelineBuilder()
            .stage(start)
            .stage(tester, releaser)
            .finally_notify(CheckRunNotifier(config=cfg, commit=sha, payload_text=payload_text))
        )

    # ------------------------------------------------------------------
    # exec
    # ------------------------------------------------------------------

    def _route_manual(self, event: Event) -> PipelineBuilder:
        # No notification stage: manual runs are fire-and-forget.
        name = self.config.project_name
        return PipelineBuilder().stage(
            test_job(self.config, f"{name}-test"),
            e2e_job(self.config, f"{name}-e2e"),
        )

    def _notification(self, state: NotificationState, description: str, commit: str) -> Notification:
        return Notification(
            repo=self.config.repo_name,
            state=state,
            description=description,
            context=self.config.notify_context,
            token=self.config.github_token,
            commit=commit,
        )


def _ref_tag(ref: str) -> str:
    """Third path segment of a ref: refs/tags/v1.2.0 -> v1.2.0, refs/heads/master -> master."""
    parts = ref.split("/")
    if len(parts) < 3 or not parts[2]:
        raise MalformedEventError(f"Cannot derive an image tag from ref {ref!r}")
    return parts[2]


def route(config: ProjectConfig, event: Event | Mapping[str, Any]) -> Pipeline:
    """Route a single event without keeping a router around."""
    if not isinstance(event, Event):
        event = Event.from_dict(event)
    return EventRouter(config).route(event)
