from __future__ import annotations

from typing import Any, Optional, Union

from fastapi import BackgroundTasks, FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import ProjectConfig
from .events import Event, MalformedEventError, Revision
from .executor import DockerExecutor, Executor
from .model import Pipeline
from .router import EventRouter
from .runner import PipelineRunner, run_pipeline

# -------------------- Schemas --------------------

class RevisionIn(BaseModel):
    commit: str = ""
    ref: str = ""

class EventIn(BaseModel):
    type: str
    payload: Union[dict[str, Any], str, None] = None
    buildID: str = ""
    revision: RevisionIn = Field(default_factory=RevisionIn)

    def to_event(self) -> Event:
        return Event(
            type=self.type,
            payload=self.payload,
            build_id=self.buildID,
            revision=Revision(commit=self.revision.commit, ref=self.revision.ref),
        )

class StageOut(BaseModel):
    jobs: list[str]

class PlanResponse(BaseModel):
    stages: list[StageOut]
    terminal: Optional[str]
    run_all_independent: bool

class AcceptedResponse(BaseModel):
    accepted: bool
    jobs: list[str]


def _plan(pipeline: Pipeline) -> PlanResponse:
    terminal = None
    if pipeline.terminal is not None:
        terminal = pipeline.terminal.for_outcome(True).name
    return PlanResponse(
        stages=[StageOut(jobs=[j.name for j in stage]) for stage in pipeline.stages],
        terminal=terminal,
        run_all_independent=pipeline.run_all_independent,
    )

# -------------------- App --------------------

def create_app(
    config: Optional[ProjectConfig] = None,
    executor: Optional[Executor] = None,
    *,
    run_all_independent: bool = False,
) -> FastAPI:
    """
    Webhook gateway: the event runtime posts events here.

    Run with `uvicorn --factory kashtici.gateway:create_app`.
    """
    config = config or ProjectConfig.from_env()
    router = EventRouter(config, run_all_independent=run_all_independent)
    runner = PipelineRunner(executor or DockerExecutor(source_dir=config.source_dir))

    app = FastAPI(title="kashti-ci gateway")

    def _route(event: Event) -> Pipeline:
        try:
            return router.route(event)
        except MalformedEventError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    @app.post("/events/preview", response_model=PlanResponse)
    async def preview(body: EventIn):
        pipeline = _route(body.to_event())
        return _plan(pipeline)

    @app.post("/events", response_model=AcceptedResponse, status_code=202)
    async def submit(body: EventIn, background: BackgroundTasks):
        event = body.to_event()
        pipeline = _route(event)
        if pipeline.is_empty:
            return AcceptedResponse(accepted=False, jobs=[])

        background.add_task(run_pipeline, event, pipeline, runner, repository=config.repo_name)
        return AcceptedResponse(accepted=True, jobs=[j.name for j in pipeline.jobs()])

    return app
