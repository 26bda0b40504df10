from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from crashfix.models import CrashAlertEvent, CrashIssue, NotificationThread, SourceExcerpt
from crashfix.notify.blocks import analysis_blocks, initial_alert_blocks
from crashfix.notify.slack_client import SlackApiError, SlackWebClient


EventCallback = Callable[[str, Dict[str, Any]], None]


def _noop(name: str, payload: Dict[str, Any]) -> None:
    return None


@dataclass(frozen=True)
class NotificationChannel:
    """
    Two-phase Slack reporting for one crash event: a root alert posted right away,
    then the analysis as a threaded reply. Slack failures are reported through
    `on_event` only; there is no other channel left to surface them on.
    """

    slack: SlackWebClient
    channel_id: str
    console_url: str
    github_repo: str
    branch: str
    block_limit: int = 2900

    async def post_initial_alert(
        self,
        event: CrashAlertEvent,
        *,
        on_event: EventCallback | None = None,
    ) -> Optional[NotificationThread]:
        emit = on_event or _noop
        try:
            ts = await self.slack.post_message(
                channel=self.channel_id,
                text=f"{event.emoji} {event.type_label}: {event.issue.title}",
                blocks=initial_alert_blocks(event, console_url=self.console_url),
            )
        except SlackApiError as e:
            emit("notify.initial_failed", {"error": str(e)})
            return None
        if not ts:
            emit("notify.initial_failed", {"error": "missing_ts"})
            return None
        emit("notify.initial_posted", {"ts": ts})
        return NotificationThread(channel=self.channel_id, root_ts=ts)

    async def post_analysis(
        self,
        thread: NotificationThread,
        *,
        analysis: Optional[str],
        issue: CrashIssue,
        excerpts: Sequence[SourceExcerpt],
        on_event: EventCallback | None = None,
    ) -> bool:
        emit = on_event or _noop
        blocks = analysis_blocks(
            analysis=analysis,
            issue=issue,
            excerpts=excerpts,
            repo=self.github_repo,
            branch=self.branch,
            block_limit=self.block_limit,
        )
        try:
            ts = await self.slack.post_message(
                channel=thread.channel,
                thread_ts=thread.root_ts,
                text="AI crash analysis",
                blocks=blocks,
            )
        except SlackApiError as e:
            emit("notify.analysis_failed", {"error": str(e)})
            return False
        thread.replies.append(ts)
        emit("notify.analysis_posted", {"ts": ts, "blocks": len(blocks)})

        try:
            await self.slack.add_reaction(channel=thread.channel, ts=thread.root_ts, name="white_check_mark")
        except SlackApiError as e:
            emit("notify.reaction_failed", {"error": str(e)})
        return True

    async def post_thread_error(
        self,
        thread: NotificationThread,
        message: str,
        *,
        on_event: EventCallback | None = None,
    ) -> None:
        emit = on_event or _noop
        try:
            ts = await self.slack.post_message(
                channel=thread.channel,
                thread_ts=thread.root_ts,
                text=f"❌ Error during AI analysis: {message}\n\nPlease check manually.",
            )
        except SlackApiError as e:
            emit("notify.error_post_failed", {"error": str(e)})
            return
        thread.replies.append(ts)
