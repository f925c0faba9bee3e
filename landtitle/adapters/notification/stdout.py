"""Stdout notification adapter.

Implements AlertNotificationPort by printing follow-up alerts and
workflow summaries to the terminal.
"""

import asyncio
import logging

from landtitle.core.models import RequestStats, TitlingRequest
from landtitle.core.ports import AlertNotificationPort

logger = logging.getLogger(__name__)


class StdoutAlertNotifier(AlertNotificationPort):
    """Prints alerts to stdout with human-readable formatting."""

    def __init__(self, verbose: bool = False):
        """Initialize stdout alert notifier.

        Args:
            verbose: If True, include documents and notes in alerts.
        """
        self.verbose = verbose

    async def notify_attention(self, request: TitlingRequest, message: str) -> None:
        """Print one alert block for a flagged request."""
        await asyncio.to_thread(print, self._format_alert(request, message))
        logger.debug(
            f"Alert printed for {request.code}",
            extra={"request_code": str(request.code)},
        )

    async def report_summary(self, stats: RequestStats) -> None:
        """Print a workflow statistics report."""
        await asyncio.to_thread(print, self._format_summary(stats))

    def _format_alert(self, request: TitlingRequest, message: str) -> str:
        lines = [
            "=" * 80,
            f"ATTENTION: {request.code}",
            "=" * 80,
            f"Requester: {request.requester_name} ({request.requester_id.masked})",
            f"Type: {request.request_type.name}",
            f"Status: {request.status.name}",
            f"Priority: {request.priority}",
            f"Case File: {request.case_file_number or '-'}",
            f"Days Elapsed: {request.days_elapsed()}",
            "",
            message,
        ]

        if self.verbose:
            lines.append("")
            lines.append(f"Documents ({len(request.documents)}):")
            for i, document in enumerate(request.documents, 1):
                lines.append(f"  {i}. {document}")
            if request.notes:
                lines.append(f"Notes: {request.notes}")

        lines.append("=" * 80)
        return "\n".join(lines)

    @staticmethod
    def _format_summary(stats: RequestStats) -> str:
        lines = [
            "=" * 80,
            "TITLING SUMMARY",
            "=" * 80,
            "",
            f"Total Requests: {stats.total}",
            f"In Progress: {stats.in_progress}",
            f"Finished: {stats.finished}",
            f"Delayed: {stats.delayed}",
            f"Urgent: {stats.urgent}",
            f"Success Rate: {stats.success_percentage:.1f}%",
        ]

        by_status = {k: v for k, v in stats.by_status.items() if v}
        if by_status:
            lines.append("")
            lines.append("By Status:")
            for status, count in sorted(by_status.items()):
                lines.append(f"  {status}: {count}")

        by_type = {k: v for k, v in stats.by_type.items() if v}
        if by_type:
            lines.append("")
            lines.append("By Type:")
            for request_type, count in sorted(by_type.items(), key=lambda x: -x[1]):
                lines.append(f"  {request_type}: {count}")

        lines.append("")
        lines.append(f"Generated: {stats.generated_at.isoformat()}")
        lines.append("=" * 80)
        return "\n".join(lines)
