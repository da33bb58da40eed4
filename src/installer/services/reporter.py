"""Progress reporting to an external webhook."""

import logging

import httpx

from installer.models.progress import ProgressEvent


class ReportService:
    """Posts install progress events to a configured HTTP endpoint.

    Registered as a ProgressPublisher listener when ``report_url`` is set.
    """

    def __init__(self, report_url: str, timeout: float = 5.0):
        """Initialize report service.

        Args:
            report_url: Full URL that receives POSTed progress events
            timeout: Per-request timeout in seconds
        """
        self.logger = logging.getLogger("installer.reporter")
        self.report_url = report_url
        self.timeout = timeout

    async def report_progress(self, event: ProgressEvent) -> None:
        """Send one progress event.

        Args:
            event: Progress event to deliver

        Note:
            Failures are logged but not raised to avoid blocking the install
        """
        self.logger.debug(
            f"Reporting to {self.report_url}: step={event.step}, status={event.status.value}"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.report_url,
                    json=event.model_dump(mode="json", exclude_none=True),
                )
                response.raise_for_status()
                self.logger.debug("Report sent successfully")

        except httpx.HTTPError as e:
            self.logger.warning(
                f"Failed to report progress to {self.report_url}: {e}. "
                f"Continuing installation..."
            )
        except Exception as e:
            self.logger.error(
                f"Unexpected error reporting progress: {e}",
                exc_info=True,
            )

    async def __call__(self, event: ProgressEvent) -> None:
        await self.report_progress(event)
