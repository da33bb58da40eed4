"""FastAPI application and command-line entry point for the OpenClaw installer."""

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from installer.api.models import InstallRequest
from installer.api.routes import router
from installer.errors import InstallerError
from installer.models.services import InstallMethod
from installer.models.settings import InstallerSettings
from installer.services.container import InstallerContext, build_context
from installer.services.orchestrator import resume_point
from installer.utils.logging import setup_logger

SERVICE_NAME = "openclaw-installer"
SERVICE_VERSION = "1.0.0"


async def log_resume_point(ctx: InstallerContext, logger: logging.Logger) -> None:
    """Report where the next install would start, based on the checkpoint."""
    try:
        checkpoint = await ctx.checkpoints.get_checkpoint()
    except InstallerError as e:
        logger.error(f"Checkpoint unreadable: {e}")
        return

    if checkpoint is None:
        logger.info("No checkpoint found, installation will start fresh")
        return

    start = resume_point(checkpoint)
    if start is None:
        logger.info(f"Installation already complete (version {checkpoint.version})")
    elif checkpoint.failed:
        logger.warning(
            f"Previous install failed at {checkpoint.step.value}: {checkpoint.error}; "
            f"next run resumes at {start.value}"
        )
    else:
        logger.info(
            f"Found checkpoint: step={checkpoint.step.value}, next run resumes at {start.value}"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown hooks.

    Startup:
    - Initialize logger
    - Build settings and services into app.state.ctx
    - Log the resume point derived from the checkpoint

    Shutdown:
    - Log shutdown message
    """
    settings: InstallerSettings = app.state.settings
    logger = setup_logger("installer", settings.log_file, level=settings.log_level)
    logger.info("OpenClaw installer starting up...")

    ctx = build_context(settings)
    app.state.ctx = ctx
    await log_resume_point(ctx, logger)

    logger.info(f"OpenClaw installer ready on {settings.host}:{settings.port}")

    yield

    logger.info("OpenClaw installer shutting down...")


def create_app(settings: Optional[InstallerSettings] = None) -> FastAPI:
    app = FastAPI(
        title="OpenClaw Installer",
        description="Checkpointed, resumable installer for the OpenClaw agent runtime",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings or InstallerSettings.from_env()
    app.include_router(router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": SERVICE_NAME, "version": SERVICE_VERSION}

    return app


async def run_install(ctx: InstallerContext, request: InstallRequest) -> int:
    def echo(event) -> None:
        print(f"[{event.step}] {event.status.value}: {event.message}")

    ctx.publisher.subscribe(echo)
    try:
        result = await ctx.orchestrator.install(request)
    except InstallerError as e:
        print(f"Installation failed: {e}", file=sys.stderr)
        return 1
    print(result.message)
    return 0


async def run_repair(ctx: InstallerContext) -> int:
    report = await ctx.repair_runner.repair()
    print(json.dumps(report.to_json_dict(), indent=2))
    return 0 if report.overall_success else 1


async def show_checkpoint(ctx: InstallerContext) -> int:
    checkpoint = await ctx.checkpoints.get_checkpoint()
    if checkpoint is None:
        print("No checkpoint")
    else:
        print(json.dumps(checkpoint.to_json_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=SERVICE_NAME, description="OpenClaw installer")
    parser.add_argument("--data-dir", help="Override the application data directory")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    install = sub.add_parser("install", help="Install or resume installation")
    install.add_argument(
        "--method",
        choices=[m.value for m in InstallMethod],
        default=InstallMethod.NPM.value,
    )

    sub.add_parser("repair", help="Run diagnostics and auto-fix")
    sub.add_parser("checkpoint", help="Print the current install checkpoint")
    return parser


def cli(argv: Optional[list[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    command = args.command or "serve"

    overrides = {"data_dir": args.data_dir, "log_level": args.log_level}
    if command == "serve":
        overrides.update(host=args.host, port=args.port)
    settings = InstallerSettings.from_env(**overrides)

    if command == "serve":
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
            access_log=True,
        )
        return 0

    setup_logger("installer", settings.log_file, level=settings.log_level)
    ctx = build_context(settings)

    if command == "install":
        request = InstallRequest(install_method=InstallMethod(args.method))
        return asyncio.run(run_install(ctx, request))
    if command == "repair":
        return asyncio.run(run_repair(ctx))
    return asyncio.run(show_checkpoint(ctx))


def main():
    sys.exit(cli())


if __name__ == "__main__":
    main()
