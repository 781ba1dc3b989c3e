"""
FastAPI app for scopemate.

Endpoints:
- POST /estimate
- POST /flatten
- GET  /health

Request bodies use the project definition format of scopemate.data_io.
"""

from __future__ import annotations

import logging
import math
import sys
from pathlib import Path
from typing import Dict, List, Union

# --- Make src/ importable ----------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, field_validator

from scopemate.data_io import project_from_definition
from scopemate.errors import ScopemateError
from scopemate.estimator import estimate_project, flatten
from scopemate.schema import Requirement

logger = logging.getLogger(__name__)

app = FastAPI(title="scopemate API")


# --- Request / Response schemas ----------------------------------------------


class TaskPayload(BaseModel):
    name: str = Field(min_length=1)
    type: str = ""
    time: Union[int, float] = 0

    @field_validator("time")
    @classmethod
    def check_time(cls, value: Union[int, float]) -> Union[int, float]:
        if not math.isfinite(value) or value < 0:
            raise ValueError("time must be a finite, non-negative number of minutes")
        return value


class EntryPayload(BaseModel):
    ref: str
    nb: int = Field(default=1, ge=1)


class ProjectPayload(BaseModel):
    """
    A project definition.

    Body example:
    {
      "tasks": [
        {"name": "Portrait", "type": "Art", "time": 60},
        {"name": "BGMTrack", "type": "Music", "time": 120}
      ],
      "requirements": {
        "character": [{"ref": "Portrait", "nb": 2}],
        "game": [{"ref": "character", "nb": 2}, {"ref": "BGMTrack", "nb": 3}]
      },
      "root": "game"
    }
    """

    tasks: List[TaskPayload] = Field(default_factory=list)
    requirements: Dict[str, List[EntryPayload]] = Field(default_factory=dict)
    root: str


class TaskStatOut(BaseModel):
    name: str
    type: str
    time: Union[int, float]
    nb: int
    totalTime: str
    percent: int


class TypeStatOut(BaseModel):
    type: str
    time: str
    percent: int


class EstimateResponse(BaseModel):
    totalTime: str
    taskStats: List[TaskStatOut]
    typeStats: List[TypeStatOut]


class FlatTaskOut(BaseModel):
    name: str
    type: str
    time: Union[int, float]
    nb: int


class FlattenResponse(BaseModel):
    tasks: List[FlatTaskOut]


# --- Helpers -----------------------------------------------------------------


def build_project(payload: ProjectPayload) -> Requirement:
    """Turn a validated payload into a requirement tree (422 on bad definitions)."""
    try:
        return project_from_definition(payload.model_dump())
    except ScopemateError as e:
        raise HTTPException(status_code=422, detail=str(e))


# --- Endpoints ---------------------------------------------------------------


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/estimate", response_model=EstimateResponse)
def estimate(payload: ProjectPayload) -> EstimateResponse:
    """
    Estimate total, per-task and per-type time for a project definition.
    """
    root = build_project(payload)
    try:
        stats = estimate_project(root)
    except ScopemateError as e:
        logger.info("Rejected project %r: %s", payload.root, e)
        raise HTTPException(status_code=422, detail=str(e))

    return EstimateResponse(**stats.to_dict())


@app.post("/flatten", response_model=FlattenResponse)
def flatten_project(payload: ProjectPayload) -> FlattenResponse:
    """
    Return the effective count of every task of a project definition.
    """
    root = build_project(payload)
    try:
        flat_tasks = flatten(root)
    except ScopemateError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return FlattenResponse(tasks=[FlatTaskOut(**f.to_dict()) for f in flat_tasks])


# Convenience for local dev:
# uvicorn app.api:app --reload
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.api:app", host="0.0.0.0", port=8000, reload=True)
