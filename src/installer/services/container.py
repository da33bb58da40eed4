"""Startup wiring: builds every service once from InstallerSettings."""

import logging
from dataclasses import dataclass
from typing import Optional

from installer.models.settings import InstallerSettings
from installer.services.checkpoint_store import CheckpointStore
from installer.services.config_compiler import ConfigCompiler
from installer.services.credentials import FileCredentialStore
from installer.services.daemon import DaemonManager
from installer.services.durable_writer import DurableWriter
from installer.services.health import HealthChecker
from installer.services.interfaces import ServiceBundle
from installer.services.orchestrator import InstallOrchestrator
from installer.services.package import PackageInstaller
from installer.services.progress import ProgressPublisher
from installer.services.repair import RepairRunner
from installer.services.reporter import ReportService
from installer.services.runtime import RuntimeResolver


@dataclass
class InstallerContext:
    settings: InstallerSettings
    writer: DurableWriter
    checkpoints: CheckpointStore
    publisher: ProgressPublisher
    services: ServiceBundle
    orchestrator: InstallOrchestrator
    repair_runner: RepairRunner
    reporter: Optional[ReportService] = None


def build_services(settings: InstallerSettings, writer: DurableWriter) -> ServiceBundle:
    runtime = RuntimeResolver(
        runtime_bin=settings.runtime_bin,
        min_version=settings.runtime_min_version,
        expected_sha256=settings.runtime_sha256,
    )
    daemon = DaemonManager(openclaw_bin=settings.openclaw_bin)
    return ServiceBundle(
        runtime=runtime,
        packages=PackageInstaller(
            runtime,
            openclaw_bin=settings.openclaw_bin,
            version=settings.openclaw_version,
            source_dir=settings.openclaw_dir / "source",
        ),
        config=ConfigCompiler(settings.config_path, settings.config_history_dir, writer=writer),
        credentials=FileCredentialStore(settings.vault_path, writer=writer),
        daemon=daemon,
        health=HealthChecker(daemon, gateway_url=settings.gateway_url),
    )


def build_context(
    settings: InstallerSettings, services: Optional[ServiceBundle] = None
) -> InstallerContext:
    """Construct the orchestrator, repair runner and their collaborators.

    Args:
        settings: Installer settings
        services: Pre-built collaborators (built from settings if None)
    """
    logger = logging.getLogger("installer.container")
    writer = DurableWriter()
    checkpoints = CheckpointStore(settings.checkpoint_path, settings.openclaw_version, writer)
    publisher = ProgressPublisher()
    services = services or build_services(settings, writer)

    reporter = None
    if settings.report_url:
        reporter = ReportService(settings.report_url)
        publisher.subscribe(reporter)
        logger.info(f"Progress webhook enabled: {settings.report_url}")

    return InstallerContext(
        settings=settings,
        writer=writer,
        checkpoints=checkpoints,
        publisher=publisher,
        services=services,
        orchestrator=InstallOrchestrator(
            services,
            checkpoints,
            publisher,
            writer=writer,
            summary_path=settings.install_summary_path,
        ),
        repair_runner=RepairRunner(
            services, checkpoints, failure_tolerance=settings.repair_failure_tolerance
        ),
        reporter=reporter,
    )
