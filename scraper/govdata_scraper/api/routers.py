"""Invocation and run-log endpoints."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..logging import logger
from ..models import InvocationRequest, RunSummary
from ..services import run_fill_source, run_vacuum
from ..services.modes import InvalidRunRequest
from ..services.vacuum_runs import get_run, list_recent_runs

functions_router = APIRouter(prefix="/functions", tags=["functions"])
runs_router = APIRouter(prefix="/runs", tags=["runs"])

STATUS_CODES = {
    "completed": status.HTTP_200_OK,
    "completed_with_errors": status.HTTP_200_OK,
    "skipped": status.HTTP_409_CONFLICT,
    "failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def _read_invocation(request: Request) -> InvocationRequest:
    """Parse the request body; an empty or malformed body counts as ``{}``."""
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    return InvocationRequest.model_validate(payload)


def _error_response(status_code: int, run_status: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "status": run_status, "error": message},
    )


async def _invoke(request: Request, runner: Callable[[InvocationRequest], RunSummary]) -> JSONResponse:
    try:
        invocation = await _read_invocation(request)
    except ValidationError as exc:
        return _error_response(status.HTTP_400_BAD_REQUEST, "invalid", str(exc))

    try:
        summary = await run_in_threadpool(runner, invocation)
    except InvalidRunRequest as exc:
        return _error_response(status.HTTP_400_BAD_REQUEST, "invalid", str(exc))
    except Exception as exc:
        logger.exception("invocation_failed", path=request.url.path, error=str(exc))
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "failed", str(exc))

    body: dict[str, Any] = summary.to_response()
    if summary.status == "failed" and summary.errors:
        body["error"] = summary.errors[-1]
    return JSONResponse(status_code=STATUS_CODES.get(summary.status, status.HTTP_200_OK), content=body)


@functions_router.post("/vacuum-all")
async def vacuum_all(request: Request) -> JSONResponse:
    return await _invoke(request, run_vacuum)


@functions_router.post("/fill-source")
async def fill_source(request: Request) -> JSONResponse:
    return await _invoke(request, run_fill_source)


@runs_router.get("")
async def list_runs(limit: int = Query(20, ge=1, le=200)) -> list[dict[str, Any]]:
    return await run_in_threadpool(list_recent_runs, limit)


@runs_router.get("/{run_id}")
async def get_run_detail(run_id: int) -> dict[str, Any]:
    run = await run_in_threadpool(get_run, run_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Run {run_id} not found")
    return run
