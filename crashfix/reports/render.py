from __future__ import annotations

from crashfix.models import CrashIssue, FixProposal


def render_fix_pr_body(*, issue: CrashIssue, proposal: FixProposal) -> str:
    """
    Markdown body for an AI-generated crash fix PR.
    """
    lines: list[str] = []
    lines.append("## 🤖 AI crash fix")
    lines.append("")
    lines.append("### Crash")
    lines.append(f"- **Error:** `{issue.title or 'N/A'}`")
    lines.append(f"- **Details:** `{issue.subtitle or 'N/A'}`")
    lines.append(f"- **App version:** {issue.app_version or 'N/A'}")
    lines.append("")
    lines.append("### Changes")
    for f in proposal.fixes:
        lines.append(f"- `{f.path}`: {f.summary}")
    lines.append("")
    lines.append("### Details")
    lines.append(
        proposal.pr_description.strip()
        or "Fix generated from the AI root-cause analysis of this crash."
    )
    lines.append("")
    lines.append("---")
    lines.append("")
    lines.append("> ⚠️ **This PR was generated automatically.** Review the code before merging.")
    lines.append("> 🤖 Generated by the Crashlytics AI bot")
    return "\n".join(lines).rstrip() + "\n"


def render_tracking_issue_body(*, issue: CrashIssue) -> str:
    lines: list[str] = []
    lines.append("## Crashlytics report")
    lines.append("")
    lines.append(f"**Error:** `{issue.title}`")
    lines.append(f"**Details:** `{issue.subtitle}`")
    lines.append(f"**App version:** {issue.app_version or 'N/A'}")
    lines.append("")
    lines.append("---")
    lines.append("")
    lines.append("> Created automatically by the Crashlytics AI bot.")
    lines.append("> The AI analysis is in the Slack thread.")
    return "\n".join(lines).rstrip() + "\n"
