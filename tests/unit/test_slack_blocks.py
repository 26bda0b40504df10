from __future__ import annotations

import json

import pytest

from crashfix.models import AlertKind, CrashAlertEvent, CrashIssue, FixEntry, FixProposal, PullRequestResult, SourceExcerpt
from crashfix.notify.blocks import (
    ACTION_CREATE_FIX_PR,
    ACTION_CREATE_ISSUE,
    ANALYSIS_UNAVAILABLE,
    MAX_ACTION_VALUE,
    action_value,
    analysis_blocks,
    chunk_text,
    has_action,
    initial_alert_blocks,
    pr_progress_text,
    pr_success_blocks,
)


ISSUE = CrashIssue(id="i", title="EXC_BREAKPOINT", subtitle="UserService.swift line 53", app_version="1.0.2")
RESOLVED = SourceExcerpt(file="UserService.swift", path="App/UserService.swift", line=53, content="secret body", excerpt="x")
UNRESOLVED = SourceExcerpt(file="Ghost.swift", line=2, error="file not found")


def _sections(blocks):
    return [b["text"]["text"] for b in blocks if b["type"] == "section" and "text" in b]


def test_chunk_text() -> None:
    assert chunk_text("abcdefg", 3) == ["abc", "def", "g"]
    assert chunk_text("", 3) == [""]
    with pytest.raises(ValueError):
        chunk_text("x", 0)


def test_initial_alert_blocks() -> None:
    ev = CrashAlertEvent(app_id="1:2:android:3", kind=AlertKind.regression, issue=ISSUE)
    blocks = initial_alert_blocks(ev, console_url="https://console.example/crashlytics")

    assert blocks[0]["text"]["text"] == "↩️ Regressed issue"
    fields = [f["text"] for f in blocks[1]["fields"]]
    assert fields == ["*Platform:*\n🤖 Android", "*App version:*\n1.0.2"]
    assert "`EXC_BREAKPOINT`" in _sections(blocks)[0]
    assert blocks[-1]["elements"][0]["url"] == "https://console.example/crashlytics"


def test_action_value_carries_only_resolved_hints() -> None:
    value = json.loads(action_value(ISSUE, [RESOLVED, UNRESOLVED]))
    assert value == {
        "title": "EXC_BREAKPOINT",
        "subtitle": "UserService.swift line 53",
        "appVersion": "1.0.2",
        "files": [{"filePath": "App/UserService.swift", "line": 53}],
    }
    assert "secret body" not in action_value(ISSUE, [RESOLVED])


def test_action_value_fits_slack_limit() -> None:
    long_issue = CrashIssue(id="i", title="T" * 1500, subtitle="S" * 3000, app_version="1.0.2")
    value = action_value(long_issue, [RESOLVED])
    assert len(value) <= MAX_ACTION_VALUE
    decoded = json.loads(value)
    assert decoded["files"] == [{"filePath": "App/UserService.swift", "line": 53}]
    assert decoded["title"].startswith("T")

    many = [
        SourceExcerpt(file=f"F{i}.swift", path=f"Sources/Module/Feature{i}/F{i}.swift", line=i, content="x")
        for i in range(60)
    ]
    value = action_value(ISSUE, many)
    assert len(value) <= MAX_ACTION_VALUE
    files = json.loads(value)["files"]
    assert 0 < len(files) < 60
    assert files[0] == {"filePath": "Sources/Module/Feature0/F0.swift", "line": 0}


def test_analysis_blocks_with_resolved_source_offers_fix_pr() -> None:
    blocks = analysis_blocks(analysis="root cause", issue=ISSUE, excerpts=[RESOLVED], repo="o/r", branch="Development")
    texts = _sections(blocks)

    assert texts[0] == "root cause"
    assert "<https://github.com/o/r/blob/Development/App/UserService.swift#L53|App/UserService.swift:53>" in texts[1]
    assert has_action(blocks, ACTION_CREATE_ISSUE)
    assert has_action(blocks, ACTION_CREATE_FIX_PR)
    fix_btn = blocks[-1]["elements"][1]
    assert fix_btn["confirm"]["confirm"]["text"] == "Create PR"


def test_analysis_blocks_without_source_only_offers_issue() -> None:
    blocks = analysis_blocks(analysis=None, issue=ISSUE, excerpts=[UNRESOLVED], repo="o/r", branch="b")
    assert _sections(blocks) == [ANALYSIS_UNAVAILABLE]
    assert has_action(blocks, ACTION_CREATE_ISSUE)
    assert not has_action(blocks, ACTION_CREATE_FIX_PR)


def test_long_analysis_is_split_across_sections() -> None:
    blocks = analysis_blocks(analysis="a" * 6000, issue=ISSUE, excerpts=[], repo="o/r", branch="b", block_limit=2900)
    assert [len(t) for t in _sections(blocks)] == [2900, 2900, 200]


def test_pr_progress_text() -> None:
    assert pr_progress_text(0).splitlines() == ["🔄 Creating a fix PR...", "", "① Resolving source code..."]
    assert pr_progress_text(2).splitlines()[2:] == [
        "① Resolving source code ✅",
        "② Generating fix with AI ✅",
        "③ Creating branch and committing on GitHub...",
    ]


def test_pr_success_blocks() -> None:
    pr = PullRequestResult(pr_number=7, pr_title="Fix", pr_url="https://github.com/o/r/pull/7", branch_name="b")
    proposal = FixProposal(fixes=[FixEntry(path="A.swift", fixed_code="x", summary="guard")])
    texts = _sections(pr_success_blocks(pr, proposal))
    assert "<https://github.com/o/r/pull/7|#7 Fix>" in texts[0]
    assert "`A.swift`" in texts[1] and "guard" in texts[1]
