from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from crashfix.models import ActionFile, ActionPayload, CrashAlertEvent, CrashIssue, FixProposal, PullRequestResult, SourceExcerpt


Block = Dict[str, Any]

ACTION_CREATE_ISSUE = "create_github_issue"
ACTION_CREATE_FIX_PR = "create_fix_pr"

ANALYSIS_UNAVAILABLE = "Analysis could not be performed: the AI call failed or there was not enough data."

# Slack caps button values at 2000 characters.
MAX_ACTION_VALUE = 2000
MIN_TITLE_CHARS = 100

PR_STEPS = (
    "① Resolving source code",
    "② Generating fix with AI",
    "③ Creating branch and committing on GitHub",
)


def chunk_text(text: str, limit: int) -> List[str]:
    """
    Split `text` into consecutive pieces of at most `limit` characters.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    return [text[i : i + limit] for i in range(0, len(text), limit)] or [""]


def _plain(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


def _mrkdwn_section(text: str) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def initial_alert_blocks(event: CrashAlertEvent, *, console_url: str) -> List[Block]:
    issue = event.issue
    return [
        {"type": "header", "text": _plain(f"{event.emoji} {event.type_label}")},
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Platform:*\n{event.platform}"},
                {"type": "mrkdwn", "text": f"*App version:*\n{issue.app_version or 'N/A'}"},
            ],
        },
        _mrkdwn_section(f"*Error:*\n`{issue.title}`\n*Details:*\n`{issue.subtitle}`"),
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": "🤖 AI analysis in progress... results will follow in this thread."}],
        },
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Open in Firebase console"},
                    "style": "danger",
                    "url": console_url,
                }
            ],
        },
    ]


def file_link(*, repo: str, branch: str, path: str, line: Optional[int]) -> str:
    return f"<https://github.com/{repo}/blob/{branch}/{path}#L{line or 1}|{path}:{line or ''}>"


def action_value(issue: CrashIssue, excerpts: Sequence[SourceExcerpt]) -> str:
    """
    JSON carried by the action buttons. Only path/line hints, never file content.

    Slack rejects the whole message when a button value exceeds MAX_ACTION_VALUE,
    so the value is shrunk until it fits: subtitle first, then the title down to
    a short prefix, then trailing files.
    """
    payload = ActionPayload(
        title=issue.title or "Unknown crash",
        subtitle=issue.subtitle or "",
        app_version=issue.app_version or "",
        files=[ActionFile(path=r.path, line=r.line) for r in excerpts if r.resolved and r.path],
    )
    value = payload.model_dump_json(by_alias=True)
    while len(value) > MAX_ACTION_VALUE:
        cut = len(value) - MAX_ACTION_VALUE + 1
        if payload.subtitle:
            payload.subtitle = payload.subtitle[: max(0, len(payload.subtitle) - cut)]
        elif len(payload.title) > MIN_TITLE_CHARS:
            payload.title = payload.title[: max(MIN_TITLE_CHARS, len(payload.title) - cut)]
        elif payload.files:
            payload.files.pop()
        else:
            payload.title = payload.title[: max(0, len(payload.title) - cut)]
        value = payload.model_dump_json(by_alias=True)
    return value


def analysis_blocks(
    *,
    analysis: Optional[str],
    issue: CrashIssue,
    excerpts: Sequence[SourceExcerpt],
    repo: str,
    branch: str,
    block_limit: int = 2900,
) -> List[Block]:
    blocks: List[Block] = [
        {"type": "header", "text": _plain("🤖 AI crash analysis")},
        {"type": "divider"},
    ]
    for chunk in chunk_text(analysis or ANALYSIS_UNAVAILABLE, block_limit):
        blocks.append(_mrkdwn_section(chunk))

    resolved = [r for r in excerpts if r.resolved and r.path]
    if resolved:
        links = "\n".join(file_link(repo=repo, branch=branch, path=r.path or "", line=r.line) for r in resolved)
        blocks.append({"type": "divider"})
        blocks.append(_mrkdwn_section(f"📂 *Related source:*\n{links}"))

    value = action_value(issue, excerpts)
    elements: List[Block] = [
        {
            "type": "button",
            "text": {"type": "plain_text", "text": "🐛 Create GitHub issue"},
            "action_id": ACTION_CREATE_ISSUE,
            "value": value,
        }
    ]
    if resolved:
        elements.append(
            {
                "type": "button",
                "text": {"type": "plain_text", "text": "🔀 Create fix PR"},
                "style": "primary",
                "action_id": ACTION_CREATE_FIX_PR,
                "value": value,
                "confirm": {
                    "title": {"type": "plain_text", "text": "Create a fix PR?"},
                    "text": {
                        "type": "mrkdwn",
                        "text": "The AI will generate a fix for this crash and open a PR.\n\n⚠️ *Review the code before merging.*",
                    },
                    "confirm": {"type": "plain_text", "text": "Create PR"},
                    "deny": {"type": "plain_text", "text": "Cancel"},
                },
            }
        )
    blocks.append({"type": "divider"})
    blocks.append({"type": "actions", "elements": elements})
    return blocks


def has_action(blocks: Sequence[Block], action_id: str) -> bool:
    for b in blocks:
        if b.get("type") != "actions":
            continue
        if any(el.get("action_id") == action_id for el in b.get("elements") or []):
            return True
    return False


def pr_progress_text(done: int) -> str:
    """
    Status text for the fix-PR flow after `done` steps completed (0..2).
    """
    lines = ["🔄 Creating a fix PR...", ""]
    for i, step in enumerate(PR_STEPS[: done + 1]):
        lines.append(f"{step} ✅" if i < done else f"{step}...")
    return "\n".join(lines)


def pr_success_blocks(pr: PullRequestResult, proposal: FixProposal) -> List[Block]:
    summaries = "\n".join(f"• `{f.path}` — {f.summary}" for f in proposal.fixes)
    return [
        _mrkdwn_section(f"✅ *Fix PR created!*\n\n<{pr.pr_url}|#{pr.pr_number} {pr.pr_title}>"),
        {"type": "divider"},
        _mrkdwn_section(f"📝 *Changes:*\n{summaries}"),
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": "⚠️ AI-generated code. Review it before merging."}],
        },
    ]
