"""REST API router aggregating the workflow engine routes."""

from __future__ import annotations

from fastapi import APIRouter

from . import events, nodes, realtime, runs, workflows

router = APIRouter(prefix="/api")

router.include_router(workflows.router, tags=["Workflows"])
router.include_router(runs.router, tags=["Runs"])
router.include_router(events.router, tags=["Events"])
router.include_router(nodes.router, tags=["Nodes"])
router.include_router(realtime.router, tags=["Realtime"])
