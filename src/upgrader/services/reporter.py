"""Stage event reporting to an external monitoring endpoint."""

import logging
from typing import Optional

import httpx

from upgrader.api.models import ReportPayload, StageEvent
from upgrader.models.stage import UpgradeStage


class ReportService:
    """Posts stage events so monitoring can spot a stalled upgrade."""

    def __init__(self, report_url: Optional[str] = None, timeout: float = 5.0):
        """Initialize report service.

        Args:
            report_url: Endpoint receiving ReportPayload JSON; None disables reporting
            timeout: Per-request timeout in seconds
        """
        self.logger = logging.getLogger("upgrader.reporter")
        self.report_url = report_url
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return self.report_url is not None

    async def report(
        self,
        stage: UpgradeStage,
        event: StageEvent,
        message: str,
        error: Optional[str] = None,
    ) -> None:
        """Send a stage event.

        Note:
            Failures are logged but not raised: reporting must never block
            or fail an upgrade
        """
        if not self.enabled:
            return

        payload = ReportPayload(stage=stage, event=event, message=message, error=error)
        self.logger.debug(f"Reporting: stage={stage.value}, event={event.value}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.report_url,
                    json=payload.model_dump(mode="json"),
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.warning(
                f"Failed to report {event.value} for {stage.value}: {e}. "
                f"Continuing upgrade..."
            )
