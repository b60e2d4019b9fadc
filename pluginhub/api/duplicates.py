"""
Duplicate analysis and optimization endpoints.

Scans, hashing and plan execution are blocking; they run on a worker thread.
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pluginhub.core.errors import BatchPartialFailure
from pluginhub.lib.typed_errors import parse_error
from pluginhub.models.plan import Plan

router = APIRouter()
logger = logging.getLogger(__name__)


class PlanInput(BaseModel):
    include_version_conflicts: bool = False
    cleanup: bool = False


class OptimizeInput(PlanInput):
    """Execute the given plan, or a freshly computed one when omitted."""

    plan: Optional[Plan] = None


def _analyze(hub):
    inventories = hub.discover_installations()
    return hub.analyze_duplicates(inventories)


@router.get("/duplicates")
async def get_duplicates(request: Request) -> dict[str, Any]:
    hub = request.app.state.hub
    report = await asyncio.to_thread(_analyze, hub)
    return {
        "report": report.model_dump(mode="json"),
        "suggestions": hub.generate_suggestions(report),
    }


@router.post("/duplicates/plan")
async def create_plan(request: Request, body: PlanInput) -> dict[str, Any]:
    hub = request.app.state.hub
    report = await asyncio.to_thread(_analyze, hub)
    plan = hub.create_optimization_plan(report, body.include_version_conflicts, body.cleanup)
    return {"plan": plan.model_dump(mode="json")}


@router.post("/duplicates/optimize")
async def optimize(request: Request, body: OptimizeInput):
    hub = request.app.state.hub

    def _run():
        plan = body.plan
        if plan is None:
            report = _analyze(hub)
            plan = hub.create_optimization_plan(
                report, body.include_version_conflicts, body.cleanup
            )
        return hub.execute_plan(plan)

    try:
        result = await asyncio.to_thread(_run)
    except BatchPartialFailure as e:
        logger.warning(f"Optimization finished with {e.count} failures")
        return JSONResponse(
            status_code=207,
            content={
                "result": e.result.model_dump(mode="json") if e.result is not None else None,
                "error": parse_error(e).model_dump(mode="json", by_alias=True),
            },
        )
    return {"result": result.model_dump(mode="json")}
