from __future__ import annotations

import pytest

from kashtici import dsl
from kashtici.model import JobKind, Notification, NotificationState
from kashtici.notify import STATUS_DESCRIPTION_LIMIT, CheckRunNotifier, StatusNotifier


def test_build_job_tasks_and_env(config):
    job = dsl.build_job(config, "kashti-release", "v1.2.0")

    assert job.image == "microsoft/azure-cli:latest"
    assert job.tag == "v1.2.0"
    assert job.labels["image"] == "kashti"
    assert job.env == {
        "AZURE_CONTAINER_REGISTRY": "kashtireg",
        "ACR_TOKEN": "acr-secret",
        "ACR_TENANT": "tenant-1",
    }
    assert "az acr build -r kashtireg -t kashti:v1.2.0 ." in job.tasks
    assert job.tasks[1] == "cd /src"
    # secrets stay in the environment, not in the commands
    assert not any("acr-secret" in t for t in job.tasks)


def test_test_and_e2e_jobs(config):
    unit = dsl.test_job(config, "kashti-test")
    e2e = dsl.e2e_job(config, "kashti-e2e")

    assert unit.image == "node:8"
    assert unit.tasks == ("cd /src", "yarn install", "ng lint", "ng test --single-run")
    assert e2e.tasks[-1] == "ng e2e"
    assert unit.kind is JobKind.JOB


def test_constructors_do_not_share_environment(config):
    a = dsl.build_job(config, "a", "one")
    b = dsl.build_job(config, "b", "two")
    assert a.env is not b.env
    assert a.tag != b.tag


def test_notify_job_default_name():
    n = Notification("Azure/kashti", NotificationState.SUCCESS, "ok", "brigade", "t", "abc")
    job = dsl.notify_job(n)
    assert job.name == "notify-success"
    assert job.is_notification
    assert job.env["GH_STATE"] == "success"


def test_check_run_job_env(config):
    n = Notification("Azure/kashti", NotificationState.PENDING, "Beginning test run", "brigade", "t", "abc")
    job = dsl.check_run_job(config, "start-run", n, '{"x": 1}', summary="Beginning test run")

    assert job.image_force_pull
    assert job.image == config.check_run_image
    assert job.env["CHECK_PAYLOAD"] == '{"x": 1}'
    assert job.env["CHECK_SUMMARY"] == "Beginning test run"
    assert "CHECK_CONCLUSION" not in job.env
    assert job.env["GH_COMMIT"] == "abc"


def test_builder_is_immutable(config):
    base = dsl.pipeline().stage(dsl.test_job(config, "t"))
    longer = base.stage(dsl.e2e_job(config, "e"))

    assert len(base.build().stages) == 1
    assert len(longer.build().stages) == 2
    assert not base.build().run_all_independent
    assert longer.run_all_independent().build().run_all_independent


def test_builder_rejects_empty_stage():
    with pytest.raises(ValueError):
        dsl.PipelineBuilder().stage()


def test_status_notifier_outcomes():
    notifier = StatusNotifier(
        repo="Azure/kashti",
        context="brigade",
        token="t",
        commit="abc",
        success_description="build b passed",
        failure_description="failed build b",
    )
    ok = notifier.for_outcome(True)
    bad = notifier.for_outcome(False, "stage 2 failed: kashti-release")

    assert ok.env["GH_STATE"] == "success"
    assert ok.env["GH_DESCRIPTION"] == "build b passed"
    assert bad.name == "notify-failure"
    assert bad.env["GH_DESCRIPTION"] == "failed build b: stage 2 failed: kashti-release"


def test_status_notifier_truncates_description():
    notifier = StatusNotifier("r", "c", "t", "abc", "ok", "failed")
    job = notifier.for_outcome(False, "x" * 500)
    assert len(job.env["GH_DESCRIPTION"]) == STATUS_DESCRIPTION_LIMIT
    assert job.env["GH_DESCRIPTION"].endswith("...")


def test_check_run_notifier_outcomes(config):
    notifier = CheckRunNotifier(config=config, commit="abc", payload_text="{}")

    ok = notifier.for_outcome(True)
    assert ok.name == "end-run"
    assert ok.env["CHECK_CONCLUSION"] == "success"
    assert ok.env["CHECK_SUMMARY"] == "Build completed"

    bad = notifier.for_outcome(False, "stage 2 failed: kashti-test")
    assert bad.env["CHECK_CONCLUSION"] == "failure"
    assert bad.env["CHECK_SUMMARY"] == "Build failed"
    assert bad.env["CHECK_TEXT"] == "Error: stage 2 failed: kashti-test"
    assert bad.env["GH_STATE"] == "failure"
