from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

import httpx

from crashfix.diagnosis.json_repair import parse_fix_proposal
from crashfix.diagnosis.prompts import build_analysis_prompt, build_fix_prompt
from crashfix.llm.anthropic_client import AnthropicClient, LLMError
from crashfix.models import CrashIssue, FixProposal, SourceExcerpt


EventCallback = Callable[[str, Dict[str, Any]], None]

_LLM_ERRORS = (LLMError, httpx.HTTPError)


def _noop(name: str, payload: Dict[str, Any]) -> None:
    return None


@dataclass(frozen=True)
class DiagnosticEngine:
    """
    Two independent model calls over the same crash + source context:
    a free-text diagnosis for humans, and a structured fix proposal for the PR flow.
    Both return None instead of raising; callers decide how to surface that.
    """

    llm: AnthropicClient
    model: str
    analysis_max_tokens: int = 2048
    fix_max_tokens: int = 16384
    language: str = "swift"

    async def analyze(
        self,
        issue: CrashIssue,
        *,
        label: str,
        excerpts: Sequence[SourceExcerpt],
        on_event: EventCallback | None = None,
    ) -> Optional[str]:
        emit = on_event or _noop
        prompt = build_analysis_prompt(issue=issue, label=label, excerpts=excerpts, language=self.language)
        try:
            res = await self.llm.chat(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.analysis_max_tokens,
            )
        except _LLM_ERRORS as e:
            emit("analysis.failed", {"error": str(e)})
            return None
        emit("analysis.completed", {"chars": len(res.text), "stop_reason": res.stop_reason})
        return res.text

    async def generate_fix(
        self,
        issue: CrashIssue,
        *,
        excerpts: Sequence[SourceExcerpt],
        on_event: EventCallback | None = None,
    ) -> Optional[FixProposal]:
        emit = on_event or _noop
        fixable = [r for r in excerpts if r.resolved]
        if not fixable:
            emit("fix.skipped", {"reason": "no_resolved_source"})
            return None

        prompt = build_fix_prompt(issue=issue, excerpts=fixable, language=self.language)
        try:
            res = await self.llm.chat(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.fix_max_tokens,
            )
        except _LLM_ERRORS as e:
            emit("fix.failed", {"error": str(e)})
            return None
        if res.truncated:
            emit("fix.truncated", {"chars": len(res.text)})

        proposal, err = parse_fix_proposal(res.text)
        if proposal is None:
            emit("fix.failed", {"error": err, "chars": len(res.text)})
            return None
        if err == "repaired":
            emit("fix.json_repaired", {"chars": len(res.text)})

        allowed = {r.path for r in fixable}
        kept = [f for f in proposal.fixes if f.path in allowed]
        if not kept:
            emit("fix.failed", {"error": "fixes_target_unknown_files", "paths": [f.path for f in proposal.fixes]})
            return None
        if len(kept) != len(proposal.fixes):
            emit("fix.filtered", {"dropped": [f.path for f in proposal.fixes if f.path not in allowed]})
        emit("fix.generated", {"files": [f.path for f in kept]})
        return proposal.model_copy(update={"fixes": kept})
