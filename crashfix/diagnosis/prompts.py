from __future__ import annotations

from typing import Sequence

from crashfix.models import CrashIssue, SourceExcerpt
from crashfix.parsers.crash_signal import crash_pattern_hints


NO_SOURCE_CONTEXT = "No source context: source lookup was not performed or did not find any file."

ANALYSIS_SECTIONS = """Analyze the following:

1. **🔍 Root cause**
   Combine the error name, method and source code to explain exactly why the crash happens.

2. **🔄 Reproduction scenario**
   Give 1-2 user flows that can trigger this crash.

3. **🛠️ Suggested patch**
   Propose a concrete code patch. Use guard let, optional chaining, nil coalescing or other defensive constructs as appropriate.

4. **🛡️ Defensive coding**
   Suggest extra defensive logic that prevents the same class of crash.

5. **⚠️ Nearby risk areas**
   Point out places in the same file or project that carry a similar risk.

This is shown in a Slack message: write concise Markdown, 3-5 sentences per item."""


FIX_RULES = [
    "fixedCode must be the complete, fixed content of the file.",
    "Keep the existing structure and style; change only what the crash requires.",
    "Prefer guard let, optional chaining and nil coalescing over force unwrapping.",
    "Do not make unrelated changes. Minimal diff only.",
    "Only edit files listed above, using their exact paths.",
    "Respond with JSON only, wrapped in a ```json fence.",
]


def render_source_context(excerpts: Sequence[SourceExcerpt], *, language: str) -> str:
    if not excerpts:
        return NO_SOURCE_CONTEXT
    parts = []
    for r in excerpts:
        if not r.resolved:
            parts.append(f"### {r.file} (line {r.line or 'N/A'})\nLookup failed: {r.error}")
            continue
        history = "\n".join(r.recent_commits) or "(no history available)"
        parts.append(
            f"### {r.path} (crash line: {r.line or 'N/A'})\n"
            f"```{language}\n{r.excerpt}\n```\n\n"
            f"**Recent changes:**\n{history}"
        )
    return "\n\n".join(parts)


def build_analysis_prompt(*, issue: CrashIssue, label: str, excerpts: Sequence[SourceExcerpt], language: str = "swift") -> str:
    hints = "\n".join(f"• {h}" for h in crash_pattern_hints(issue.title)) or "No known crash pattern matched."
    return (
        "You are an expert in iOS/Swift crash analysis. Analyze this crash reported by Firebase Crashlytics.\n\n"
        "## Crash\n"
        f"- Alert type: {label}\n"
        f"- Error title: {issue.title or 'N/A'}\n"
        f"- Details (method/location): {issue.subtitle or 'N/A'}\n"
        f"- App version: {issue.app_version or 'N/A'}\n\n"
        "## Crash pattern hints\n"
        f"{hints}\n\n"
        "## Related source code (from GitHub)\n"
        f"{render_source_context(excerpts, language=language)}\n\n"
        "---\n\n"
        f"{ANALYSIS_SECTIONS}"
    )


def build_fix_prompt(*, issue: CrashIssue, excerpts: Sequence[SourceExcerpt], language: str = "swift") -> str:
    files = "\n\n".join(
        f"### File: {r.path} (crash line: {r.line or 'N/A'})\n```{language}\n{r.content}\n```" for r in excerpts
    )
    rules = "\n".join(f"- {r}" for r in FIX_RULES)
    return (
        "You are a senior iOS engineer fixing a production crash.\n\n"
        "## Crash\n"
        f"- Error: {issue.title or 'N/A'}\n"
        f"- Details: {issue.subtitle or 'N/A'}\n\n"
        "## Source files to fix (full content)\n"
        f"{files}\n\n"
        "---\n\n"
        "Fix the crash. Respond ONLY with JSON in this exact shape:\n\n"
        "```json\n"
        "{\n"
        '  "fixes": [\n'
        '    {"filePath": "exact path of the file", "fixedCode": "full fixed file content", "summary": "one-line summary"}\n'
        "  ],\n"
        '  "prTitle": "short PR title",\n'
        '  "prDescription": "detailed explanation (Markdown)"\n'
        "}\n"
        "```\n\n"
        f"Rules:\n{rules}"
    )
