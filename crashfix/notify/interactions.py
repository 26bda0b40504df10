from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from crashfix.diagnosis.engine import DiagnosticEngine
from crashfix.gitops.github_rest import GitHubApiError, GitHubRestClient
from crashfix.gitops.pr_creator import PublishError, PullRequestCreator, create_tracking_issue
from crashfix.models import ActionPayload
from crashfix.notify.blocks import ACTION_CREATE_FIX_PR, ACTION_CREATE_ISSUE, Block, pr_progress_text, pr_success_blocks
from crashfix.notify.slack_client import SlackApiError, SlackWebClient
from crashfix.parsers.payloads import decode_action_value
from crashfix.source.resolver import SourceResolver


EventCallback = Callable[[str, Dict[str, Any]], None]

FIX_NOT_GENERATED = (
    "❌ Could not generate a fix. The source code was insufficient or the AI call failed."
)


def _noop(name: str, payload: Dict[str, Any]) -> None:
    return None


@dataclass(frozen=True)
class InteractionHandler:
    """
    Handles Slack button clicks posted back from the analysis thread.

    Nothing is kept between the analysis and the click: the button value carries
    the crash title/subtitle and file path hints, and source is fetched again here.
    Every path ends with a message in the thread, success or failure.
    """

    slack: SlackWebClient
    github: GitHubRestClient
    resolver: SourceResolver
    engine: DiagnosticEngine
    publisher: PullRequestCreator

    async def handle(self, payload: Dict[str, Any], *, on_event: EventCallback | None = None) -> str:
        emit = on_event or _noop
        if payload.get("type") != "block_actions":
            return "ignored"
        actions = payload.get("actions") or []
        if not actions or not isinstance(actions[0], dict):
            return "ignored"
        action = actions[0]
        action_id = action.get("action_id")
        channel = (payload.get("channel") or {}).get("id")
        message = payload.get("message") or {}
        thread_ts = message.get("thread_ts") or message.get("ts")
        emit("interaction.received", {"action_id": action_id, "channel": channel, "thread_ts": thread_ts})

        if action_id not in (ACTION_CREATE_ISSUE, ACTION_CREATE_FIX_PR):
            return "ignored"
        if not channel:
            emit("interaction.invalid", {"reason": "missing_channel"})
            return "invalid"
        crash = decode_action_value(action.get("value"))
        if crash is None:
            emit("interaction.invalid", {"reason": "bad_action_value"})
            return "invalid"

        if action_id == ACTION_CREATE_ISSUE:
            return await self._create_issue(crash, channel=channel, thread_ts=thread_ts, emit=emit)
        return await self._create_fix_pr(crash, channel=channel, thread_ts=thread_ts, emit=emit)

    async def _create_issue(self, crash: ActionPayload, *, channel: str, thread_ts: Optional[str], emit: EventCallback) -> str:
        try:
            gh_issue = await create_tracking_issue(self.github, issue=crash.to_issue())
        except (GitHubApiError, httpx.HTTPError) as e:
            emit("issue.failed", {"error": str(e)})
            await self._post(channel, thread_ts, f"❌ GitHub issue creation failed: {e}", emit)
            return "issue_failed"
        emit("issue.created", {"number": gh_issue.number, "url": gh_issue.url})
        await self._post(
            channel,
            thread_ts,
            f"✅ GitHub issue created: <{gh_issue.url}|#{gh_issue.number} {gh_issue.title}>",
            emit,
        )
        return "issue_created"

    async def _create_fix_pr(self, crash: ActionPayload, *, channel: str, thread_ts: Optional[str], emit: EventCallback) -> str:
        status_ts = await self._post(channel, thread_ts, pr_progress_text(0), emit)
        if status_ts is None:
            return "failed"

        issue = crash.to_issue()
        try:
            excerpts = await self.resolver.resolve_all(crash.to_locations(), on_event=emit)
            await self._update(channel, status_ts, pr_progress_text(1), emit)

            proposal = await self.engine.generate_fix(issue, excerpts=excerpts, on_event=emit)
            if proposal is None:
                await self._update(channel, status_ts, FIX_NOT_GENERATED, emit)
                return "fix_not_generated"
            await self._update(channel, status_ts, pr_progress_text(2), emit)

            pr = await self.publisher.create(issue=issue, proposal=proposal, excerpts=excerpts, on_event=emit)
        except PublishError as e:
            await self._update(channel, status_ts, f"❌ PR creation failed: {e}", emit)
            return "pr_failed"
        except Exception as e:  # noqa: BLE001
            emit("interaction.failed", {"error": f"{type(e).__name__}: {e}"})
            await self._update(channel, status_ts, f"❌ PR creation failed: {e}", emit)
            return "failed"

        await self._update(
            channel,
            status_ts,
            f"✅ Fix PR created: #{pr.pr_number}",
            emit,
            blocks=pr_success_blocks(pr, proposal),
        )
        return "pr_created"

    async def _post(self, channel: str, thread_ts: Optional[str], text: str, emit: EventCallback) -> Optional[str]:
        try:
            return await self.slack.post_message(channel=channel, thread_ts=thread_ts, text=text)
        except SlackApiError as e:
            emit("notify.post_failed", {"error": str(e)})
            return None

    async def _update(
        self,
        channel: str,
        ts: str,
        text: str,
        emit: EventCallback,
        *,
        blocks: Optional[List[Block]] = None,
    ) -> None:
        try:
            await self.slack.update_message(channel=channel, ts=ts, text=text, blocks=blocks)
        except SlackApiError as e:
            emit("notify.update_failed", {"error": str(e)})
