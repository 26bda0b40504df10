from __future__ import annotations

import asyncio

from crashfix.models import AlertKind, PipelineOutcome
from crashfix.parsers.crash_signal import extract_file_locations
from crashfix.testing.scenarios import (
    TEST_APP_ID,
    TEST_SCENARIOS,
    build_fake_event,
    custom_issue,
    find_scenario,
    run_scenarios,
)


def test_scenario_catalogue() -> None:
    ids = [s.id for s in TEST_SCENARIOS]
    assert len(ids) == 32
    assert len(set(ids)) == len(ids)
    # Every scenario points at a source file the parser can pick up.
    for s in TEST_SCENARIOS:
        assert extract_file_locations(s.title, s.subtitle), s.id


def test_find_scenario_and_issue_id() -> None:
    s = find_scenario("force_unwrap_user")
    assert s is not None
    issue = s.to_issue()
    assert issue.id == "TEST_force_unwrap_user"
    assert issue.subtitle == "CrashScenarios.swift - UserService.getCurrentUserName() line 53"
    assert find_scenario("nope") is None


def test_build_fake_event() -> None:
    s = find_scenario("appview2_index")
    ev = build_fake_event(s.to_issue(), project="proj", label=s.label)
    assert ev.app_id == TEST_APP_ID
    assert ev.kind == AlertKind.test
    assert ev.platform == "🍎 iOS"
    assert ev.type_label.startswith("[Test] AppView2")


def test_custom_issue_defaults() -> None:
    issue = custom_issue({"title": "Boom"})
    assert (issue.id, issue.title, issue.subtitle, issue.app_version) == ("CUSTOM_TEST", "Boom", "N/A", "1.0.0")


class _Pipeline:
    def __init__(self) -> None:
        self.seen = []

    async def run(self, event, *, on_event=None):
        self.seen.append(event.issue.id)
        if event.issue.id.endswith("force_cast"):
            raise RuntimeError("kaboom")
        status = "aborted" if event.issue.id.endswith("race_condition") else "completed"
        return PipelineOutcome(issue_id=event.issue.id, status=status, aborted_reason="notification_failed" if status == "aborted" else None)


def test_run_scenarios_collects_results() -> None:
    picked = [find_scenario(i) for i in ("force_unwrap_user", "force_cast", "race_condition")]
    p = _Pipeline()
    results = asyncio.run(run_scenarios(p, picked, project="proj"))

    assert p.seen == ["TEST_force_unwrap_user", "TEST_force_cast", "TEST_race_condition"]
    assert [(r.id, r.success) for r in results] == [
        ("force_unwrap_user", True),
        ("force_cast", False),
        ("race_condition", False),
    ]
    assert results[1].error == "RuntimeError: kaboom"
    assert results[2].error == "notification_failed"
