"""API route handlers for installer endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from installer.api.models import ErrorResponse, InstallRequest, ProgressResponse, SuccessResponse
from installer.api.sse import stream_progress
from installer.errors import InstallerError, InstallInProgressError
from installer.models.steps import ProgressStatus
from installer.services.container import InstallerContext
from installer.services.orchestrator import InstallOrchestrator

router = APIRouter(prefix="/api/v1.0")
logger = logging.getLogger("installer.api")


def get_context(request: Request) -> InstallerContext:
    return request.app.state.ctx


def _in_progress() -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=ErrorResponse(
            code=409, msg=f"{InstallInProgressError.code}: installation already running"
        ).model_dump(),
    )


@router.post("/install", response_model=SuccessResponse)
async def post_install(
    request: InstallRequest,
    background_tasks: BackgroundTasks,
    ctx: InstallerContext = Depends(get_context),
):
    """POST /api/v1.0/install - Start (or resume) the installation.

    The install runs in the background; follow it via GET /progress or the
    SSE stream.

    Response format (already running):
        {
            "code": 409,
            "msg": "INSTALL_IN_PROGRESS: installation already running"
        }
    """
    if ctx.orchestrator.is_running:
        return _in_progress()

    background_tasks.add_task(_install_workflow, ctx.orchestrator, request)
    return JSONResponse(
        status_code=200,
        content=SuccessResponse().model_dump(),
    )


@router.get("/checkpoint")
async def get_checkpoint(ctx: InstallerContext = Depends(get_context)):
    """GET /api/v1.0/checkpoint - Current resume marker, or null if none."""
    try:
        checkpoint = await ctx.checkpoints.get_checkpoint()
    except InstallerError as e:
        return JSONResponse(
            status_code=200, content=ErrorResponse(code=500, msg=str(e)).model_dump()
        )

    return JSONResponse(
        status_code=200,
        content={
            "code": 200,
            "msg": "success",
            "data": checkpoint.to_json_dict() if checkpoint else None,
        },
    )


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(ctx: InstallerContext = Depends(get_context)):
    """GET /api/v1.0/progress - Latest progress event.

    Response format (failed step):
        {
            "code": 500,
            "msg": "Install failed: Step failed: runtime: ...",
            "data": {"step": "runtime", "status": "failed", "message": "...", "progress": 0}
        }
    """
    latest = ctx.publisher.latest
    if latest is not None and latest.status == ProgressStatus.FAILED:
        return ProgressResponse(code=500, msg=f"Install failed: {latest.message}", data=latest)
    return ProgressResponse(code=200, msg="success", data=latest)


@router.get("/events/install-progress")
async def stream_install_progress(
    request: Request, ctx: InstallerContext = Depends(get_context)
):
    """GET /api/v1.0/events/install-progress - SSE stream of progress events."""
    return StreamingResponse(
        stream_progress(ctx.publisher, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/repair")
async def post_repair(ctx: InstallerContext = Depends(get_context)):
    """POST /api/v1.0/repair - Run diagnostics and auto-fix.

    Refused while an install is running. ``code`` is 200 when the report's
    overallSuccess is true, 500 otherwise; the report is always returned.
    """
    if ctx.orchestrator.is_running:
        return _in_progress()

    report = await ctx.repair_runner.repair()
    return JSONResponse(
        status_code=200,
        content={
            "code": 200 if report.overall_success else 500,
            "msg": "success" if report.overall_success else "Repair found unresolved issues",
            "data": report.to_json_dict(),
        },
    )


async def _install_workflow(orchestrator: InstallOrchestrator, request: InstallRequest) -> None:
    """Background task for the install workflow."""
    try:
        result = await orchestrator.install(request)
        logger.info(result.message)
    except InstallInProgressError:
        logger.warning("Install request ignored: another install is running")
    except InstallerError as e:
        # Progress already records the failure.
        logger.error(f"Install stopped: {e}")
    except Exception as e:
        logger.error(f"Install workflow crashed: {e}", exc_info=True)
