from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from crashfix.diagnosis.engine import DiagnosticEngine
from crashfix.models import CrashAlertEvent, PipelineOutcome, SourceExcerpt
from crashfix.notify.channel import NotificationChannel
from crashfix.parsers.crash_signal import extract_file_locations
from crashfix.source.resolver import SourceResolver


EventCallback = Callable[[str, Dict[str, Any]], None]


def _noop(name: str, payload: Dict[str, Any]) -> None:
    return None


@dataclass(frozen=True)
class CrashPipeline:
    """
    alert -> parse -> resolve -> diagnose -> threaded analysis, for one crash event.

    Stages run one after another. Only a failed initial alert aborts the run (there is
    no thread to post into); everything later degrades and the thread always gets a reply.
    """

    channel: NotificationChannel
    resolver: SourceResolver
    engine: DiagnosticEngine
    retry_delay_s: float = 5.0
    source_extension: str = "swift"
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep)

    async def run(self, event: CrashAlertEvent, *, on_event: EventCallback | None = None) -> PipelineOutcome:
        emit = on_event or _noop
        issue = event.issue
        outcome = PipelineOutcome(issue_id=issue.id)

        thread = await self.channel.post_initial_alert(event, on_event=emit)
        if thread is None:
            outcome.status = "aborted"
            outcome.aborted_reason = "notification_failed"
            return outcome
        outcome.thread = thread

        try:
            locations = extract_file_locations(issue.title, issue.subtitle, extension=self.source_extension)
            outcome.locations = locations
            emit("parse.completed", {"locations": [loc.model_dump() for loc in locations]})

            excerpts: List[SourceExcerpt] = []
            if locations:
                excerpts = await self.resolver.resolve_all(locations, on_event=emit)
            outcome.resolved_paths = [r.path for r in excerpts if r.resolved and r.path]
            outcome.unresolved_files = [r.file for r in excerpts if not r.resolved]

            analysis = await self._analyze_with_retry(event, excerpts, emit)
            outcome.analysis_available = analysis is not None
            outcome.fix_action_offered = bool(outcome.resolved_paths)

            await self.channel.post_analysis(thread, analysis=analysis, issue=issue, excerpts=excerpts, on_event=emit)
        except Exception as e:  # noqa: BLE001
            # Report in-thread instead of dropping the event silently.
            outcome.status = "failed"
            outcome.error = f"{type(e).__name__}: {e}"
            emit("pipeline.failed", {"error": outcome.error})
            await self.channel.post_thread_error(thread, str(e), on_event=emit)
        return outcome

    async def _analyze_with_retry(
        self,
        event: CrashAlertEvent,
        excerpts: List[SourceExcerpt],
        emit: EventCallback,
    ) -> Optional[str]:
        analysis = await self.engine.analyze(event.issue, label=event.type_label, excerpts=excerpts, on_event=emit)
        if analysis is None:
            emit("analysis.retry_scheduled", {"delay_s": self.retry_delay_s})
            await self.sleep(self.retry_delay_s)
            analysis = await self.engine.analyze(event.issue, label=event.type_label, excerpts=excerpts, on_event=emit)
        return analysis
