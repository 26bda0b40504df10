from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import httpx

from crashfix.gitops.github_rest import GitHubApiError, GitHubRestClient
from crashfix.models import CrashIssue, FixProposal, PullRequestResult, SourceExcerpt, TrackingIssueResult
from crashfix.reports.render import render_fix_pr_body, render_tracking_issue_body


EventCallback = Callable[[str, Dict[str, Any]], None]

PR_LABELS: Tuple[str, ...] = ("bug", "crashlytics", "ai-fix")
ISSUE_LABELS: Tuple[str, ...] = ("bug", "crashlytics", "auto-generated")

_GITHUB_ERRORS = (GitHubApiError, httpx.HTTPError)


class PublishError(RuntimeError):
    def __init__(self, message: str, *, branch: str | None = None):
        super().__init__(message)
        self.branch = branch


def _noop(name: str, payload: Dict[str, Any]) -> None:
    return None


def sanitize_issue_id(issue_id: str | None) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "", issue_id or "unknown")[:20] or "unknown"


def fix_branch_name(issue_id: str | None, *, now_ms: int) -> str:
    return f"fix/crashlytics-{sanitize_issue_id(issue_id)}-{now_ms}"


@dataclass(frozen=True)
class PullRequestCreator:
    """
    Publishes a FixProposal as a GitHub pull request.

    Flow: branch from base head -> commit each fixed file -> open PR -> labels (best effort).
    Any failure after the branch was created deletes it before re-raising. A branch
    that could not be created (e.g. it already exists) is left alone.
    """

    client: GitHubRestClient
    base_branch: str
    labels: Sequence[str] = PR_LABELS
    clock: Callable[[], float] = field(default=time.time)

    async def create(
        self,
        *,
        issue: CrashIssue,
        proposal: FixProposal,
        excerpts: Sequence[SourceExcerpt],
        on_event: EventCallback | None = None,
    ) -> PullRequestResult:
        emit = on_event or _noop
        branch = fix_branch_name(issue.id, now_ms=int(self.clock() * 1000))
        known_shas = {r.path: r.sha for r in excerpts if r.path and r.sha}
        created = False

        try:
            base_sha = await self.client.get_branch_head_sha(branch=self.base_branch)
            await self.client.create_branch(new_branch=branch, from_sha=base_sha)
            created = True
            emit("pr.branch_created", {"branch": branch, "base_sha": base_sha})

            for fix in proposal.fixes:
                sha = known_shas.get(fix.path) or await self._sha_on_branch(fix.path, branch, emit)
                await self.client.upsert_file(
                    path=fix.path,
                    content_text=fix.fixed_code,
                    branch=branch,
                    message=f"fix: {fix.summary}",
                    known_sha=sha,
                )
                emit("pr.file_committed", {"path": fix.path, "mode": "update" if sha else "create"})

            pr = await self.client.create_pull_request(
                title=proposal.pr_title or f"[Crashlytics Fix] {issue.title}",
                body=render_fix_pr_body(issue=issue, proposal=proposal),
                head=branch,
                base=self.base_branch,
            )
        except _GITHUB_ERRORS as e:
            emit("pr.failed", {"branch": branch, "error": str(e)})
            if created:
                await self._cleanup_branch(branch, emit)
            raise PublishError(str(e), branch=branch) from e

        try:
            await self.client.add_labels(issue_number=pr.pr_number, labels=self.labels)
        except _GITHUB_ERRORS as e:
            # Labels may simply not exist in the repo.
            emit("pr.labels_failed", {"pr_number": pr.pr_number, "error": str(e)})

        emit("pr.created", {"pr_number": pr.pr_number, "pr_url": pr.pr_url, "branch": branch})
        return pr

    async def _sha_on_branch(self, path: str, branch: str, emit: EventCallback) -> Optional[str]:
        try:
            return await self.client.get_file_sha(path=path, ref=branch)
        except _GITHUB_ERRORS as e:
            emit("pr.sha_lookup_failed", {"path": path, "error": str(e)})
            return None

    async def _cleanup_branch(self, branch: str, emit: EventCallback) -> None:
        try:
            await self.client.delete_branch(branch=branch)
            emit("pr.branch_deleted", {"branch": branch})
        except _GITHUB_ERRORS as e:
            emit("pr.branch_cleanup_failed", {"branch": branch, "error": str(e)})


async def create_tracking_issue(client: GitHubRestClient, *, issue: CrashIssue) -> TrackingIssueResult:
    return await client.create_issue(
        title=f"[Crash] {issue.title}",
        body=render_tracking_issue_body(issue=issue),
        labels=ISSUE_LABELS,
    )
